"""Observability helpers (logging, metrics)."""

from .logging import REDACTED, configure_logging, current_cycle_id, cycle_context, redact
from .metrics import (
    SYNC_ACTIONS_TOTAL,
    SYNC_CYCLE_DURATION_SECONDS,
    SYNC_FILES_TOTAL,
    start_metrics_exporter,
)

__all__ = [
    "REDACTED",
    "SYNC_ACTIONS_TOTAL",
    "SYNC_CYCLE_DURATION_SECONDS",
    "SYNC_FILES_TOTAL",
    "configure_logging",
    "current_cycle_id",
    "cycle_context",
    "redact",
    "start_metrics_exporter",
]
