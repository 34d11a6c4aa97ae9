"""Service layer helpers for the CSV sync worker."""

from .cleanup import delete_processed_file, retry_with_backoff
from .scanner import FileStatus, FolderScanner, ScanReport
from .sync import ApplyReport, SyncResult, apply_plan, sync_records
from .worker import SyncWorker

__all__ = [
    "ApplyReport",
    "FileStatus",
    "FolderScanner",
    "ScanReport",
    "SyncResult",
    "SyncWorker",
    "apply_plan",
    "delete_processed_file",
    "retry_with_backoff",
    "sync_records",
]
