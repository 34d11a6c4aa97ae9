"""Wire models for the user-department mapping API."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from apps.csvsync.src.domain.models import RemoteMapping


class MappingAPIModel(BaseModel):
    """Base schema for mapping store payloads."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class MappingPayload(MappingAPIModel):
    """Request body for creating or updating a mapping."""

    microsoft_username: str = Field(min_length=1)
    department: str = Field(min_length=1)


class MappingResponse(MappingAPIModel):
    """A mapping as returned by the list endpoint."""

    id: int | str
    microsoft_username: str | None = None
    department: str | None = None

    def to_domain(self) -> RemoteMapping:
        return RemoteMapping(
            id=self.id,
            username=self.microsoft_username or "",
            department=self.department or "",
        )


MAPPING_LIST_ADAPTER: TypeAdapter[list[MappingResponse]] = TypeAdapter(list[MappingResponse])


__all__ = ["MAPPING_LIST_ADAPTER", "MappingPayload", "MappingResponse"]
