# filename: tests/conftest.py
import json
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from loguru import logger

from apps.csvsync.src.config.settings import Settings, get_settings
from apps.csvsync.src.domain.errors import MappingStoreError
from apps.csvsync.src.domain.models import RemoteMapping

_SETTINGS_ENV = (
    "APP_ENV",
    "WATCHER_FOLDER_PATH",
    "WATCHER_INTERVAL_SECONDS",
    "BACKEND_BASE_URL",
    "REQUEST_TIMEOUT_S",
    "CLEANUP_MAX_ATTEMPTS",
    "CLEANUP_BACKOFF_MS",
    "SYNC_DRY_RUN",
    "SYNC_ALLOW_EMPTY_SNAPSHOT",
    "WORKER_METRICS_ENABLED",
    "LOG_LEVEL",
    "PII_MASKING_ENABLED",
)


class FakeMappingStore:
    """In-memory stand-in for the mapping store API."""

    def __init__(self) -> None:
        self.mappings: dict[int, RemoteMapping] = {}
        self.calls: list[tuple[object, ...]] = []
        self.failing: set[tuple[str, object]] = set()
        self.list_error: MappingStoreError | None = None
        self.entered = 0
        self.exited = 0
        self._next_id = 1

    def seed(self, username: str, department: str) -> RemoteMapping:
        mapping = RemoteMapping(id=self._next_id, username=username, department=department)
        self.mappings[mapping.id] = mapping
        self._next_id += 1
        return mapping

    def fail(self, action: str, target: object) -> None:
        """Make ``action`` fail for a username (create) or mapping id (update/delete)."""

        self.failing.add((action, target))

    def departments(self) -> dict[str, str]:
        return {mapping.username: mapping.department for mapping in self.mappings.values()}

    def _maybe_fail(self, action: str, target: object) -> None:
        if (action, target) in self.failing:
            raise MappingStoreError(action, f"{action} rejected", status_code=500, body="boom")

    async def list_mappings(self) -> list[RemoteMapping]:
        self.calls.append(("list",))
        if self.list_error is not None:
            raise self.list_error
        return list(self.mappings.values())

    async def create_mapping(self, username: str, department: str) -> None:
        self.calls.append(("create", username, department))
        self._maybe_fail("create", username)
        self.seed(username, department)

    async def update_mapping(self, mapping_id: int, username: str, department: str) -> None:
        self.calls.append(("update", mapping_id, username, department))
        self._maybe_fail("update", mapping_id)
        self.mappings[mapping_id] = RemoteMapping(id=mapping_id, username=username, department=department)

    async def delete_mapping(self, mapping_id: int) -> None:
        self.calls.append(("delete", mapping_id))
        self._maybe_fail("delete", mapping_id)
        self.mappings.pop(mapping_id, None)

    async def __aenter__(self) -> "FakeMappingStore":
        self.entered += 1
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.exited += 1


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Keep host environment variables and .env files out of the settings."""

    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_store() -> FakeMappingStore:
    return FakeMappingStore()


@pytest.fixture
def watch_dir(tmp_path: Path) -> Path:
    folder = tmp_path / "inbox"
    folder.mkdir()
    return folder


@pytest.fixture
def settings(watch_dir: Path) -> Settings:
    return Settings(
        WATCHER_FOLDER_PATH=str(watch_dir),
        WATCHER_INTERVAL_SECONDS=5,
        BACKEND_BASE_URL="http://mapping-store.test",
        CLEANUP_MAX_ATTEMPTS=3,
        CLEANUP_BACKOFF_MS=0,
    )


@pytest.fixture
def read_logs() -> Iterator[Callable[[], list[dict[str, Any]]]]:
    """Collect loguru records emitted during the test."""

    raw: list[str] = []
    sink_id = logger.add(raw.append, level="DEBUG", serialize=True)

    def _read() -> list[dict[str, Any]]:
        return [json.loads(line)["record"] for line in raw]

    try:
        yield _read
    finally:
        logger.remove(sink_id)


def write_csv(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def csv_writer(watch_dir: Path) -> Callable[[str, str], Path]:
    """Return a helper writing CSV content into the watched folder."""

    def _write(name: str, content: str) -> Path:
        return write_csv(watch_dir / name, content)

    return _write
