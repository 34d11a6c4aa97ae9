"""Application settings loaded from environment and .env files."""
from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strongly-typed worker configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    app_env: str = Field(default="local", alias="APP_ENV")

    watcher_folder_path: str | None = Field(default=None, alias="WATCHER_FOLDER_PATH")
    watcher_interval_seconds: int = Field(default=60, alias="WATCHER_INTERVAL_SECONDS", ge=1)

    backend_base_url: str = Field(default="http://localhost:8089", alias="BACKEND_BASE_URL")
    request_timeout_s: float = Field(default=30.0, alias="REQUEST_TIMEOUT_S", gt=0)

    cleanup_max_attempts: int = Field(default=5, alias="CLEANUP_MAX_ATTEMPTS", ge=1)
    cleanup_backoff_ms: int = Field(default=500, alias="CLEANUP_BACKOFF_MS", ge=0)

    sync_dry_run: bool = Field(default=False, alias="SYNC_DRY_RUN")
    sync_allow_empty_snapshot: bool = Field(default=True, alias="SYNC_ALLOW_EMPTY_SNAPSHOT")

    worker_metrics_enabled: bool = Field(default=False, alias="WORKER_METRICS_ENABLED")
    worker_metrics_host: str = Field(default="0.0.0.0", alias="WORKER_METRICS_HOST")
    worker_metrics_port: int = Field(default=9100, alias="WORKER_METRICS_PORT")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    pii_masking_enabled: bool = Field(default=False, alias="PII_MASKING_ENABLED")

    @model_validator(mode="before")
    @classmethod
    def enable_pii_masking_by_default(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Turn on PII masking by default for non-local environments."""

        if isinstance(data, dict) and not any(
            key in data for key in ("PII_MASKING_ENABLED", "pii_masking_enabled")
        ):
            app_env = data.get("APP_ENV", data.get("app_env", "local"))
            if isinstance(app_env, str) and app_env != "local":
                data["pii_masking_enabled"] = True
        return data

    @property
    def folder_path(self) -> str | None:
        """Return the watched folder or ``None`` when it is unset or blank."""

        value = (self.watcher_folder_path or "").strip()
        return value or None

    @property
    def cleanup_backoff_seconds(self) -> float:
        """Return the linear backoff step used between delete attempts."""

        return self.cleanup_backoff_ms / 1000.0


def load_settings() -> Settings:
    """Read a fresh settings instance, bypassing the cache."""

    return Settings()


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return load_settings()
