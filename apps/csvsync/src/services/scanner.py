"""Folder scanning: parse, reconcile and apply every CSV file found."""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from loguru import logger

from apps.csvsync.src.config import Settings, get_settings
from apps.csvsync.src.domain.csv_records import parse_file
from apps.csvsync.src.domain.errors import CsvParseError, MappingStoreError
from apps.csvsync.src.integrations.mapping_store import MappingStore
from apps.csvsync.src.observability import SYNC_FILES_TOTAL

from .cleanup import delete_processed_file
from .sync import sync_records

CSV_SUFFIX = ".csv"

FileDeleter = Callable[..., Awaitable[bool]]


class FileStatus(str, Enum):
    """Final state of a CSV file after one scan."""

    DELETED = "deleted"
    KEPT = "kept"
    DRY_RUN = "dry_run"
    SKIPPED_EMPTY = "skipped_empty"
    FAILED = "failed"


@dataclass(slots=True)
class ScanReport:
    """Per-file outcomes of a single folder scan."""

    folder: Path
    outcomes: dict[Path, FileStatus] = field(default_factory=dict)
    cancelled: bool = False

    def files_with(self, status: FileStatus) -> list[Path]:
        return [path for path, outcome in self.outcomes.items() if outcome is status]

    @property
    def failed(self) -> list[Path]:
        return self.files_with(FileStatus.FAILED)

    @property
    def deleted(self) -> list[Path]:
        return self.files_with(FileStatus.DELETED)


def list_csv_files(folder: Path) -> list[Path]:
    """Return regular files in ``folder`` whose suffix is ``.csv`` in any case."""

    return sorted(
        path for path in folder.iterdir() if path.is_file() and path.suffix.lower() == CSV_SUFFIX
    )


class FolderScanner:
    """Drive the parse, reconcile and apply pipeline for each file of a folder."""

    def __init__(
        self,
        store: MappingStore,
        *,
        settings: Settings | None = None,
        delete_file: FileDeleter = delete_processed_file,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._delete_file = delete_file

    async def scan(
        self,
        folder: Path | str,
        *,
        stop_event: asyncio.Event | None = None,
    ) -> ScanReport:
        """Process every CSV file in ``folder`` one at a time.

        A missing folder is not an error; it may be created later.
        """

        folder = Path(folder)
        report = ScanReport(folder=folder)

        if not folder.is_dir():
            logger.bind(event="csv_sync.scan", stage="missing_folder", folder=str(folder)).warning(
                "Folder does not exist",
            )
            return report

        try:
            files = list_csv_files(folder)
        except OSError:
            logger.bind(event="csv_sync.scan", stage="list_failed", folder=str(folder)).exception(
                "Unable to list folder",
            )
            return report

        for path in files:
            if stop_event is not None and stop_event.is_set():
                report.cancelled = True
                break
            status = await self.process_file(path, stop_event=stop_event)
            report.outcomes[path] = status
            SYNC_FILES_TOTAL.labels(status=status.value).inc()

        return report

    async def process_file(
        self,
        path: Path,
        *,
        stop_event: asyncio.Event | None = None,
    ) -> FileStatus:
        """Sync a single CSV file and remove it once fully applied."""

        settings = self._settings
        log = logger.bind(event="csv_sync.file", path=str(path))
        log.info("Processing CSV file")

        try:
            records = parse_file(path)
            if not records and not settings.sync_allow_empty_snapshot:
                log.bind(stage="skipped_empty").warning(
                    "CSV file has no usable rows; skipping to protect existing mappings",
                )
                return FileStatus.SKIPPED_EMPTY

            result = await sync_records(
                self._store,
                records,
                dry_run=settings.sync_dry_run,
                stop_event=stop_event,
            )
        except CsvParseError as exc:
            log.bind(stage="parse_failed", error=str(exc)).error("Failed to parse CSV file")
            return FileStatus.FAILED
        except MappingStoreError as exc:
            log.bind(
                stage="store_failed",
                operation=exc.operation,
                status_code=exc.status_code,
                body=exc.body,
                error=str(exc),
            ).error("Failed to fetch current mappings; file kept for the next cycle")
            return FileStatus.FAILED
        except Exception:
            log.bind(stage="failure").exception("Failed to process CSV file")
            return FileStatus.FAILED

        if result.dry_run:
            return FileStatus.DRY_RUN

        if not result.report.succeeded:
            log.bind(
                stage="incomplete",
                failed=len(result.report.failures),
                cancelled=result.report.cancelled,
            ).warning("Plan not fully applied; file kept for the next cycle")
            return FileStatus.KEPT

        deleted = await self._delete_file(
            path,
            attempts=settings.cleanup_max_attempts,
            backoff_seconds=settings.cleanup_backoff_seconds,
        )
        return FileStatus.DELETED if deleted else FileStatus.KEPT


__all__ = ["CSV_SUFFIX", "FileStatus", "FolderScanner", "ScanReport", "list_csv_files"]
