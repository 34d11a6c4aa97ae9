"""Diffing of a CSV snapshot against the remote mapping store."""

from __future__ import annotations

from collections.abc import Iterable

from .models import (
    MappingUpdate,
    ReconciliationPlan,
    RemoteMapping,
    SourceRecord,
    departments_match,
)


def latest_by_username(records: Iterable[SourceRecord]) -> dict[str, SourceRecord]:
    """Collapse records sharing a username, keeping the last one in file order."""

    latest: dict[str, SourceRecord] = {}
    for record in records:
        key = record.key
        if not key:
            continue
        # Re-insert so iteration order follows the winning row.
        latest.pop(key, None)
        latest[key] = record
    return latest


def index_remote(
    mappings: Iterable[RemoteMapping],
) -> tuple[dict[str, RemoteMapping], list[RemoteMapping]]:
    """Index remote mappings by username.

    Returns the first mapping seen for every username together with any later
    duplicates. Mappings without a username are left out of both.
    """

    indexed: dict[str, RemoteMapping] = {}
    duplicates: list[RemoteMapping] = []
    for mapping in mappings:
        key = mapping.key
        if not key:
            continue
        if key in indexed:
            duplicates.append(mapping)
        else:
            indexed[key] = mapping
    return indexed, duplicates


def reconcile(
    source_records: Iterable[SourceRecord],
    remote_mappings: Iterable[RemoteMapping],
) -> ReconciliationPlan:
    """Compute the actions that make the remote store mirror ``source_records``.

    Usernames are matched case-insensitively after trimming and the last CSV
    row wins for a repeated user. Departments are compared ignoring case only.
    An empty source removes every remote mapping.

    Create, update and delete never touch the same user as long as the store
    holds one mapping per username. Extra remote mappings for a user are
    always deleted, even when the surviving one is also being updated.
    """

    source = latest_by_username(source_records)
    remote, duplicates = index_remote(remote_mappings)

    plan = ReconciliationPlan()
    for key, record in source.items():
        existing = remote.get(key)
        if existing is None:
            plan.to_create.append(record)
        elif not departments_match(existing.department, record.department):
            plan.to_update.append(MappingUpdate(mapping=existing, department=record.department))

    for key, mapping in remote.items():
        if key not in source:
            plan.to_delete.append(mapping)
    plan.to_delete.extend(duplicates)

    return plan


__all__ = ["index_remote", "latest_by_username", "reconcile"]
