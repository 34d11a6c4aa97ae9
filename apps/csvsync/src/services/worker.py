"""Scheduler loop that periodically scans the watched folder."""
from __future__ import annotations

import argparse
import asyncio
import signal
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from pathlib import Path
from time import perf_counter

from loguru import logger

from apps.csvsync.src.config import Settings, load_settings
from apps.csvsync.src.integrations.mapping_store import MappingStore, MappingStoreClient
from apps.csvsync.src.observability import (
    SYNC_CYCLE_DURATION_SECONDS,
    configure_logging,
    cycle_context,
    start_metrics_exporter,
)

from .scanner import FolderScanner, ScanReport

StoreFactory = Callable[[Settings], AbstractAsyncContextManager[MappingStore]]
ScannerFactory = Callable[[MappingStore, Settings], FolderScanner]
SleepFunc = Callable[[float], Awaitable[None]]


def _default_store_factory(settings: Settings) -> MappingStoreClient:
    return MappingStoreClient(settings=settings)


def _default_scanner_factory(store: MappingStore, settings: Settings) -> FolderScanner:
    return FolderScanner(store, settings=settings)


class SyncWorker:
    """Long-running worker that reconciles the watched folder on a fixed interval."""

    def __init__(
        self,
        *,
        settings_provider: Callable[[], Settings] = load_settings,
        store_factory: StoreFactory = _default_store_factory,
        scanner_factory: ScannerFactory = _default_scanner_factory,
        stop_event: asyncio.Event | None = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        self._settings_provider = settings_provider
        self._store_factory = store_factory
        self._scanner_factory = scanner_factory
        self._stop_event = stop_event or asyncio.Event()
        self._sleep = sleep or self._wait_for_stop

    @property
    def stop_event(self) -> asyncio.Event:
        return self._stop_event

    def request_stop(self) -> None:
        """Ask the loop to finish after the current file or action."""

        self._stop_event.set()

    async def run_forever(self) -> None:
        """Scan, sleep and repeat until a stop is requested or the task is cancelled."""

        settings = self._settings_provider()
        if settings.worker_metrics_enabled:
            start_metrics_exporter(settings.worker_metrics_host, settings.worker_metrics_port)

        logger.info("CSV sync worker started")
        while not self._stop_event.is_set():
            settings = await self.run_once()
            if self._stop_event.is_set():
                break
            await self._sleep(float(settings.watcher_interval_seconds))
        logger.info("CSV sync worker stopped")

    async def run_once(self) -> Settings:
        """Run a single cycle with freshly loaded settings and return them."""

        settings = self._settings_provider()
        folder = settings.folder_path
        if folder is None:
            logger.bind(
                event="csv_sync.cycle",
                stage="misconfigured",
                retry_in=settings.watcher_interval_seconds,
            ).error("WATCHER_FOLDER_PATH is not configured")
            return settings

        with cycle_context():
            logger.bind(
                event="csv_sync.cycle",
                stage="start",
                folder=folder,
                interval=settings.watcher_interval_seconds,
            ).info("Watching folder")
            start = perf_counter()
            try:
                report = await self._scan(Path(folder), settings)
            except Exception:
                logger.bind(event="csv_sync.cycle", stage="failure", folder=folder).exception(
                    "Error while processing folder",
                )
            else:
                logger.bind(
                    event="csv_sync.cycle",
                    stage="completed",
                    folder=folder,
                    files=len(report.outcomes),
                    failed=len(report.failed),
                    deleted=len(report.deleted),
                    cancelled=report.cancelled,
                ).info("Folder scan completed")
            finally:
                SYNC_CYCLE_DURATION_SECONDS.observe(perf_counter() - start)

        return settings

    async def _scan(self, folder: Path, settings: Settings) -> ScanReport:
        async with self._store_factory(settings) as store:
            scanner = self._scanner_factory(store, settings)
            return await scanner.scan(folder, stop_event=self._stop_event)

    async def _wait_for_stop(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sync user-department mappings from CSV drops to the mapping store.",
    )
    parser.add_argument("--once", action="store_true", help="Run a single scan and exit.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute and log plans without calling the store or deleting files.",
    )
    parser.add_argument("--folder", help="Override WATCHER_FOLDER_PATH.")
    return parser


def settings_provider_from_args(args: argparse.Namespace) -> Callable[[], Settings]:
    """Wrap :func:`load_settings` so command-line overrides survive hot reloads."""

    overrides: dict[str, object] = {}
    if args.folder:
        overrides["watcher_folder_path"] = args.folder
    if args.dry_run:
        overrides["sync_dry_run"] = True

    def _provider() -> Settings:
        settings = load_settings()
        if overrides:
            settings = settings.model_copy(update=overrides)
        return settings

    return _provider


async def _run(worker: SyncWorker, *, once: bool) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, worker.request_stop)
        except (NotImplementedError, RuntimeError):  # pragma: no cover - platform specific
            pass

    if once:
        await worker.run_once()
    else:
        await worker.run_forever()


def main(argv: list[str] | None = None) -> None:  # pragma: no cover - CLI entry point
    """Run the worker until interrupted."""

    args = build_arg_parser().parse_args(argv)
    provider = settings_provider_from_args(args)
    configure_logging(settings=provider())

    worker = SyncWorker(settings_provider=provider)
    try:
        asyncio.run(_run(worker, once=args.once))
    except KeyboardInterrupt:
        logger.info("CSV sync worker interrupted")


__all__ = ["SyncWorker", "build_arg_parser", "main", "settings_provider_from_args"]


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
