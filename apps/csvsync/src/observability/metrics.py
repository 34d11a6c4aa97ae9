"""Prometheus metrics for the CSV sync worker."""
from __future__ import annotations

from threading import Lock
from typing import Final

from loguru import logger
from prometheus_client import Counter, Histogram, start_http_server

SYNC_ACTIONS_TOTAL: Final[Counter] = Counter(
    "csv_sync_actions_total",
    "Mapping store actions attempted by the worker, labelled by action and outcome.",
    labelnames=("action", "outcome"),
)
"""Counter that tracks create/update/delete calls against the mapping store."""

SYNC_FILES_TOTAL: Final[Counter] = Counter(
    "csv_sync_files_total",
    "CSV files handled by the folder scanner, labelled by final status.",
    labelnames=("status",),
)
"""Counter that tracks per-file processing outcomes."""

SYNC_CYCLE_DURATION_SECONDS: Final[Histogram] = Histogram(
    "csv_sync_cycle_duration_seconds",
    "Histogram of folder scan cycle duration in seconds.",
)
"""Histogram that records how long a full folder scan took."""

_metrics_server_lock = Lock()
_metrics_server_started = False


def start_metrics_exporter(host: str, port: int) -> None:
    """Start the Prometheus HTTP exporter if not already running."""

    global _metrics_server_started

    if _metrics_server_started:
        return

    with _metrics_server_lock:
        if _metrics_server_started:
            return

        start_http_server(port, addr=host)
        logger.bind(host=host, port=port).info("Started CSV sync metrics exporter")
        _metrics_server_started = True


__all__ = [
    "SYNC_ACTIONS_TOTAL",
    "SYNC_CYCLE_DURATION_SECONDS",
    "SYNC_FILES_TOTAL",
    "start_metrics_exporter",
]
