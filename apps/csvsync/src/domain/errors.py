"""Exception hierarchy for the CSV sync worker."""

from __future__ import annotations


class CsvSyncError(Exception):
    """Base exception for all CSV sync errors."""


class CsvParseError(CsvSyncError):
    """Raised when a CSV source cannot be opened, decoded or its header read."""


class MappingStoreError(CsvSyncError):
    """Raised when a call to the remote mapping store fails."""

    def __init__(
        self,
        operation: str,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code
        self.body = body


__all__ = ["CsvParseError", "CsvSyncError", "MappingStoreError"]
