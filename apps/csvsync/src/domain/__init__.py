"""Domain model, CSV parsing and reconciliation logic."""

from .csv_records import parse_file, parse_records
from .errors import CsvParseError, CsvSyncError, MappingStoreError
from .models import (
    MappingUpdate,
    ReconciliationPlan,
    RemoteMapping,
    SourceRecord,
    canonical_username,
)
from .reconciliation import reconcile

__all__ = [
    "CsvParseError",
    "CsvSyncError",
    "MappingStoreError",
    "MappingUpdate",
    "ReconciliationPlan",
    "RemoteMapping",
    "SourceRecord",
    "canonical_username",
    "parse_file",
    "parse_records",
    "reconcile",
]
