"""Async client for the remote user-department mapping store."""
from __future__ import annotations

from types import TracebackType
from typing import Protocol

import httpx
from loguru import logger
from pydantic import ValidationError

from apps.csvsync.src.config import Settings, get_settings
from apps.csvsync.src.domain.errors import MappingStoreError
from apps.csvsync.src.domain.models import RemoteMapping

from .schemas import MAPPING_LIST_ADAPTER, MappingPayload

MAPPINGS_PATH = "/user-department-mappings/"


def mapping_path(mapping_id: int | str) -> str:
    """Return the resource path of a single mapping."""

    return f"/user-department-mappings/{mapping_id}"


class MappingStore(Protocol):
    """Narrow interface over the remote mapping store."""

    async def list_mappings(self) -> list[RemoteMapping]:  # pragma: no cover - Protocol
        ...

    async def create_mapping(self, username: str, department: str) -> None:  # pragma: no cover - Protocol
        ...

    async def update_mapping(
        self, mapping_id: int | str, username: str, department: str
    ) -> None:  # pragma: no cover - Protocol
        ...

    async def delete_mapping(self, mapping_id: int | str) -> None:  # pragma: no cover - Protocol
        ...


class MappingStoreClient:
    """HTTP implementation of :class:`MappingStore` backed by ``httpx``."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._base_url = (base_url or settings.backend_base_url).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=float(timeout if timeout is not None else settings.request_timeout_s),
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> MappingStoreClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def list_mappings(self) -> list[RemoteMapping]:
        """Fetch every mapping currently held by the store."""

        response = await self._send("list", "GET", MAPPINGS_PATH)
        try:
            payload = response.json()
        except ValueError as exc:
            raise MappingStoreError(
                "list",
                "Mapping store returned a non-JSON payload",
                status_code=response.status_code,
                body=response.text,
            ) from exc

        if payload is None:
            return []

        try:
            items = MAPPING_LIST_ADAPTER.validate_python(payload)
        except ValidationError as exc:
            raise MappingStoreError(
                "list",
                f"Unexpected mapping store payload: {exc.error_count()} validation error(s)",
                status_code=response.status_code,
                body=response.text,
            ) from exc

        mappings = [item.to_domain() for item in items]
        logger.bind(event="csv_sync.store", stage="list", total=len(mappings)).debug(
            "Fetched remote mappings",
        )
        return mappings

    async def create_mapping(self, username: str, department: str) -> None:
        payload = MappingPayload(microsoft_username=username, department=department)
        await self._send("create", "POST", MAPPINGS_PATH, json=payload.model_dump())

    async def update_mapping(self, mapping_id: int | str, username: str, department: str) -> None:
        payload = MappingPayload(microsoft_username=username, department=department)
        await self._send("update", "PUT", mapping_path(mapping_id), json=payload.model_dump())

    async def delete_mapping(self, mapping_id: int | str) -> None:
        await self._send("delete", "DELETE", mapping_path(mapping_id))

    async def _send(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        json: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Issue a request and raise :class:`MappingStoreError` on any failure."""

        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            raise MappingStoreError(
                operation,
                f"{method} {path} failed: {exc.__class__.__name__}: {exc}",
            ) from exc

        if not response.is_success:
            raise MappingStoreError(
                operation,
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response


__all__ = ["MAPPINGS_PATH", "MappingStore", "MappingStoreClient", "mapping_path"]
