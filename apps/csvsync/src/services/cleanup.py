"""Best-effort removal of CSV files that have been synced."""
from __future__ import annotations

import asyncio
import os
import stat
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

from loguru import logger

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BACKOFF_SECONDS = 0.5

T = TypeVar("T")

BackoffPolicy = Callable[[int], float]
SleepFunc = Callable[[float], Awaitable[None]]


def linear_backoff(step_seconds: float) -> BackoffPolicy:
    """Return a policy waiting ``step_seconds * attempt`` after each failure."""

    def _delay(attempt: int) -> float:
        return max(0.0, step_seconds) * attempt

    return _delay


async def retry_with_backoff(
    action: Callable[[], T],
    *,
    attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff: BackoffPolicy = linear_backoff(DEFAULT_BACKOFF_SECONDS),
    retry_on: tuple[type[BaseException], ...] = (OSError,),
    sleep: SleepFunc = asyncio.sleep,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
) -> T:
    """Call ``action`` until it succeeds or ``attempts`` calls have failed.

    Only exceptions listed in ``retry_on`` are retried; the last one is
    re-raised once attempts are exhausted.
    """

    max_attempts = max(1, attempts)
    attempt = 1
    while True:
        try:
            return action()
        except retry_on as exc:
            if attempt >= max_attempts:
                raise
            delay = backoff(attempt)
            if on_retry is not None:
                on_retry(attempt, exc, delay)
            if delay > 0:
                await sleep(delay)
            attempt += 1


def clear_readonly(path: Path) -> None:
    """Make ``path`` writable by its owner so it can be removed."""

    mode = path.stat().st_mode
    if not mode & stat.S_IWRITE:
        os.chmod(path, mode | stat.S_IWRITE)


def remove_file(path: Path) -> None:
    try:
        clear_readonly(path)
    except FileNotFoundError:
        return
    path.unlink(missing_ok=True)


async def delete_processed_file(
    path: Path,
    *,
    attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    remover: Callable[[Path], None] = remove_file,
    exists: Callable[[Path], bool] = Path.exists,
    sleep: SleepFunc = asyncio.sleep,
) -> bool:
    """Delete a synced CSV file, retrying while another process holds it.

    Returns ``True`` when the file is gone. Failures are logged and never raised.
    """

    if not exists(path):
        return True

    def _log_retry(attempt: int, exc: BaseException, delay: float) -> None:
        logger.bind(
            event="csv_sync.cleanup",
            stage="retry",
            path=str(path),
            attempt=attempt,
            max_attempts=attempts,
            retry_delay=delay,
            error=str(exc),
        ).info("Delete attempt failed; will retry")

    try:
        await retry_with_backoff(
            lambda: remover(path),
            attempts=attempts,
            backoff=linear_backoff(backoff_seconds),
            sleep=sleep,
            on_retry=_log_retry,
        )
    except FileNotFoundError:
        return True
    except OSError as exc:
        logger.bind(
            event="csv_sync.cleanup",
            stage="exhausted",
            path=str(path),
            attempts=attempts,
            error=str(exc),
        ).warning("Failed to delete processed CSV file")
        return False
    except Exception:
        logger.bind(event="csv_sync.cleanup", stage="failure", path=str(path)).exception(
            "Unexpected error while deleting processed CSV file",
        )
        return False

    logger.bind(event="csv_sync.cleanup", stage="deleted", path=str(path)).info(
        "Deleted processed CSV file",
    )
    return True


__all__ = [
    "DEFAULT_BACKOFF_SECONDS",
    "DEFAULT_MAX_ATTEMPTS",
    "clear_readonly",
    "delete_processed_file",
    "linear_backoff",
    "remove_file",
    "retry_with_backoff",
]
