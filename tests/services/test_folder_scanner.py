"""Tests for the folder scanner pipeline."""
from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

from apps.csvsync.src.config.settings import Settings
from apps.csvsync.src.domain import MappingStoreError
from apps.csvsync.src.services.scanner import FileStatus, FolderScanner, list_csv_files

HEADER = "microsoft_username,department\n"


def test_list_csv_files_matches_suffix_case_insensitively(watch_dir: Path) -> None:
    (watch_dir / "a.csv").write_text(HEADER)
    (watch_dir / "B.CSV").write_text(HEADER)
    (watch_dir / "notes.txt").write_text("ignore me")
    (watch_dir / "archive.csv").mkdir()

    assert [path.name for path in list_csv_files(watch_dir)] == ["B.CSV", "a.csv"]


async def test_scan_syncs_file_and_deletes_it(fake_store, settings: Settings, csv_writer) -> None:
    fake_store.seed("bob", "HR")
    path = csv_writer("users.csv", HEADER + "bob,Finance\ncarol,Legal\n")

    report = await FolderScanner(fake_store, settings=settings).scan(path.parent)

    assert report.outcomes == {path: FileStatus.DELETED}
    assert not path.exists()
    assert fake_store.departments() == {"bob": "Finance", "carol": "Legal"}


async def test_scan_missing_folder_is_not_an_error(fake_store, settings: Settings, tmp_path: Path, read_logs) -> None:
    report = await FolderScanner(fake_store, settings=settings).scan(tmp_path / "not-yet")

    assert report.outcomes == {}
    assert fake_store.calls == []
    assert any(record["extra"].get("stage") == "missing_folder" for record in read_logs())


async def test_scan_continues_after_bad_file(fake_store, settings: Settings, csv_writer) -> None:
    broken = csv_writer("a_broken.csv", "username,dept\nalice,Eng\n")
    good = csv_writer("b_good.csv", HEADER + "carol,Legal\n")

    report = await FolderScanner(fake_store, settings=settings).scan(good.parent)

    assert report.outcomes == {broken: FileStatus.FAILED, good: FileStatus.DELETED}
    assert broken.exists()
    assert fake_store.departments() == {"carol": "Legal"}


async def test_scan_keeps_file_when_fetch_fails(fake_store, settings: Settings, csv_writer) -> None:
    fake_store.list_error = MappingStoreError("list", "unavailable", status_code=503, body="down")
    path = csv_writer("users.csv", HEADER + "carol,Legal\n")

    report = await FolderScanner(fake_store, settings=settings).scan(path.parent)

    assert report.failed == [path]
    assert path.exists()


async def test_scan_keeps_file_when_an_action_fails(fake_store, settings: Settings, csv_writer) -> None:
    fake_store.fail("create", "carol")
    path = csv_writer("users.csv", HEADER + "carol,Legal\ndave,Ops\n")

    report = await FolderScanner(fake_store, settings=settings).scan(path.parent)

    assert report.outcomes == {path: FileStatus.KEPT}
    assert path.exists()
    assert fake_store.departments() == {"dave": "Ops"}


async def test_scan_keeps_file_when_delete_is_exhausted(fake_store, settings: Settings, csv_writer) -> None:
    delete_file = AsyncMock(return_value=False)
    path = csv_writer("users.csv", HEADER + "carol,Legal\n")

    report = await FolderScanner(fake_store, settings=settings, delete_file=delete_file).scan(path.parent)

    assert report.outcomes == {path: FileStatus.KEPT}
    delete_file.assert_awaited_once_with(path, attempts=3, backoff_seconds=0.0)


async def test_scan_empty_file_wipes_store_by_default(fake_store, settings: Settings, csv_writer) -> None:
    fake_store.seed("bob", "HR")
    path = csv_writer("users.csv", HEADER)

    report = await FolderScanner(fake_store, settings=settings).scan(path.parent)

    assert report.outcomes == {path: FileStatus.DELETED}
    assert fake_store.mappings == {}


async def test_scan_empty_file_is_skipped_when_guard_enabled(fake_store, settings: Settings, csv_writer) -> None:
    guarded = settings.model_copy(update={"sync_allow_empty_snapshot": False})
    fake_store.seed("bob", "HR")
    path = csv_writer("users.csv", HEADER + "alice,\n")

    report = await FolderScanner(fake_store, settings=guarded).scan(path.parent)

    assert report.outcomes == {path: FileStatus.SKIPPED_EMPTY}
    assert path.exists()
    assert fake_store.calls == []


async def test_scan_dry_run_leaves_store_and_file_untouched(fake_store, settings: Settings, csv_writer) -> None:
    dry_run = settings.model_copy(update={"sync_dry_run": True})
    fake_store.seed("bob", "HR")
    path = csv_writer("users.csv", HEADER + "carol,Legal\n")

    report = await FolderScanner(fake_store, settings=dry_run).scan(path.parent)

    assert report.outcomes == {path: FileStatus.DRY_RUN}
    assert path.exists()
    assert fake_store.departments() == {"bob": "HR"}


async def test_scan_stops_between_files_when_requested(fake_store, settings: Settings, csv_writer) -> None:
    csv_writer("a.csv", HEADER + "carol,Legal\n")
    csv_writer("b.csv", HEADER + "dave,Ops\n")
    stop_event = asyncio.Event()
    stop_event.set()

    report = await FolderScanner(fake_store, settings=settings).scan(settings.folder_path, stop_event=stop_event)

    assert report.cancelled
    assert report.outcomes == {}
    assert fake_store.calls == []
