"""Value objects shared by the parser, reconciler and mapping store client."""

from __future__ import annotations

from dataclasses import dataclass, field


def canonical_username(username: str) -> str:
    """Return the key used to match usernames across CSV rows and the store."""

    return username.strip().casefold()


def departments_match(left: str, right: str) -> bool:
    """Compare two department names ignoring case only."""

    return left.casefold() == right.casefold()


@dataclass(frozen=True, slots=True)
class SourceRecord:
    """A single ``(username, department)`` pair read from a CSV row."""

    username: str
    department: str

    @property
    def key(self) -> str:
        return canonical_username(self.username)


@dataclass(frozen=True, slots=True)
class RemoteMapping:
    """A user-to-department mapping owned by the remote store."""

    id: int | str
    username: str
    department: str

    @property
    def key(self) -> str:
        return canonical_username(self.username)


@dataclass(frozen=True, slots=True)
class MappingUpdate:
    """Pending department change for an existing remote mapping."""

    mapping: RemoteMapping
    department: str


@dataclass(slots=True)
class ReconciliationPlan:
    """Actions required to align the remote store with one CSV snapshot."""

    to_create: list[SourceRecord] = field(default_factory=list)
    to_update: list[MappingUpdate] = field(default_factory=list)
    to_delete: list[RemoteMapping] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_create or self.to_update or self.to_delete)

    def summary(self) -> dict[str, int]:
        """Return the number of pending actions per kind."""

        return {
            "create": len(self.to_create),
            "update": len(self.to_update),
            "delete": len(self.to_delete),
        }


__all__ = [
    "MappingUpdate",
    "ReconciliationPlan",
    "RemoteMapping",
    "SourceRecord",
    "canonical_username",
    "departments_match",
]
