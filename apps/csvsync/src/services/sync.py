"""Application of reconciliation plans against the mapping store."""
from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field

from loguru import logger

from apps.csvsync.src.domain.errors import MappingStoreError
from apps.csvsync.src.domain.models import ReconciliationPlan, SourceRecord
from apps.csvsync.src.domain.reconciliation import reconcile
from apps.csvsync.src.integrations.mapping_store import MappingStore
from apps.csvsync.src.observability import SYNC_ACTIONS_TOTAL


@dataclass(slots=True)
class ActionFailure:
    """A single create/update/delete call that the store rejected."""

    action: str
    status_code: int | None
    message: str
    username: str | None = None
    mapping_id: int | str | None = None


@dataclass(slots=True)
class ApplyReport:
    """Outcome of applying one plan."""

    created: int = 0
    updated: int = 0
    deleted: int = 0
    failures: list[ActionFailure] = field(default_factory=list)
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        """Whether every planned action went through."""

        return not self.failures and not self.cancelled


@dataclass(slots=True)
class SyncResult:
    """Plan computed for one snapshot together with its application report."""

    plan: ReconciliationPlan
    report: ApplyReport
    dry_run: bool = False


def _record_failure(
    report: ApplyReport,
    action: str,
    exc: MappingStoreError,
    *,
    username: str | None = None,
    department: str | None = None,
    mapping_id: int | str | None = None,
) -> None:
    SYNC_ACTIONS_TOTAL.labels(action=action, outcome="failure").inc()
    report.failures.append(
        ActionFailure(
            action=action,
            status_code=exc.status_code,
            message=str(exc),
            username=username,
            mapping_id=mapping_id,
        )
    )
    # Masking matches on field names; keep the username in its own field.
    logger.bind(
        event="csv_sync.apply",
        stage="failure",
        action=action,
        username=username,
        department=department,
        mapping_id=mapping_id,
        status_code=exc.status_code,
        body=exc.body,
    ).warning("Failed to {} mapping", action)


def _stop_requested(stop_event: asyncio.Event | None) -> bool:
    return stop_event is not None and stop_event.is_set()


async def apply_plan(
    store: MappingStore,
    plan: ReconciliationPlan,
    *,
    stop_event: asyncio.Event | None = None,
) -> ApplyReport:
    """Execute creates, updates and deletes in that order.

    A failing action is logged and counted; the remaining actions are still
    attempted. Nothing is retried here, the next cycle recomputes the plan.
    """

    report = ApplyReport()

    for record in plan.to_create:
        if _stop_requested(stop_event):
            report.cancelled = True
            return report
        try:
            await store.create_mapping(record.username, record.department)
        except MappingStoreError as exc:
            _record_failure(
                report, "create", exc, username=record.username, department=record.department
            )
        else:
            report.created += 1
            SYNC_ACTIONS_TOTAL.labels(action="create", outcome="success").inc()

    for update in plan.to_update:
        if _stop_requested(stop_event):
            report.cancelled = True
            return report
        mapping = update.mapping
        try:
            await store.update_mapping(mapping.id, mapping.username, update.department)
        except MappingStoreError as exc:
            _record_failure(
                report,
                "update",
                exc,
                username=mapping.username,
                department=update.department,
                mapping_id=mapping.id,
            )
        else:
            report.updated += 1
            SYNC_ACTIONS_TOTAL.labels(action="update", outcome="success").inc()

    for mapping in plan.to_delete:
        if _stop_requested(stop_event):
            report.cancelled = True
            return report
        try:
            await store.delete_mapping(mapping.id)
        except MappingStoreError as exc:
            _record_failure(report, "delete", exc, mapping_id=mapping.id)
        else:
            report.deleted += 1
            SYNC_ACTIONS_TOTAL.labels(action="delete", outcome="success").inc()

    return report


async def sync_records(
    store: MappingStore,
    records: Sequence[SourceRecord],
    *,
    dry_run: bool = False,
    stop_event: asyncio.Event | None = None,
) -> SyncResult:
    """Fetch the current store state, reconcile ``records`` against it and apply the plan.

    Raises :class:`MappingStoreError` when the current state cannot be fetched.
    """

    remote = await store.list_mappings()
    plan = reconcile(records, remote)

    logger.bind(
        event="csv_sync.plan",
        source_records=len(records),
        remote_mappings=len(remote),
        dry_run=dry_run,
        **plan.summary(),
    ).info("Sync summary")

    if dry_run or plan.is_empty:
        return SyncResult(plan=plan, report=ApplyReport(), dry_run=dry_run)

    report = await apply_plan(store, plan, stop_event=stop_event)
    logger.bind(
        event="csv_sync.apply",
        stage="completed",
        created=report.created,
        updated=report.updated,
        deleted=report.deleted,
        failed=len(report.failures),
        cancelled=report.cancelled,
    ).info("Applied sync plan")
    return SyncResult(plan=plan, report=report)


__all__ = ["ActionFailure", "ApplyReport", "SyncResult", "apply_plan", "sync_records"]
