"""Parsing of user-to-department CSV snapshots."""

from __future__ import annotations

import csv
from collections.abc import Iterator
from pathlib import Path
from typing import TextIO

from loguru import logger

from .errors import CsvParseError
from .models import SourceRecord

USERNAME_COLUMN = "microsoft_username"
DEPARTMENT_COLUMN = "department"
REQUIRED_COLUMNS = (USERNAME_COLUMN, DEPARTMENT_COLUMN)

_BOM = "\ufeff"


def _read_header(reader: Iterator[list[str]]) -> dict[str, int] | None:
    try:
        header = next(reader)
    except StopIteration:
        return None

    columns: dict[str, int] = {}
    for index, name in enumerate(header):
        normalized = name.strip()
        if index == 0:
            normalized = normalized.lstrip(_BOM).strip()
        # Later duplicates of a column name do not override the first one.
        columns.setdefault(normalized, index)

    missing = [column for column in REQUIRED_COLUMNS if column not in columns]
    if missing:
        raise CsvParseError(f"CSV header is missing required columns: {', '.join(missing)}")
    return columns


def _field(row: list[str], index: int) -> str:
    if index >= len(row):
        return ""
    return row[index].strip()


def parse_records(stream: TextIO) -> Iterator[SourceRecord]:
    """Yield a :class:`SourceRecord` for every usable data row of ``stream``.

    The first row must be a header naming the ``microsoft_username`` and
    ``department`` columns; other columns are ignored. Rows with a missing or
    blank value in either column are skipped silently. An empty stream yields
    nothing.
    """

    reader = csv.reader(stream)
    try:
        columns = _read_header(reader)
        if columns is None:
            return

        username_index = columns[USERNAME_COLUMN]
        department_index = columns[DEPARTMENT_COLUMN]
        for row in reader:
            username = _field(row, username_index)
            department = _field(row, department_index)
            if not username or not department:
                continue
            yield SourceRecord(username=username, department=department)
    except UnicodeDecodeError as exc:
        raise CsvParseError(f"CSV content is not valid UTF-8: {exc}") from exc
    except csv.Error as exc:
        raise CsvParseError(f"Malformed CSV content at line {reader.line_num}: {exc}") from exc


def parse_file(path: Path) -> list[SourceRecord]:
    """Read every record from the CSV file at ``path``.

    The file is closed before returning so that it can be deleted afterwards.
    """

    try:
        with path.open("r", encoding="utf-8-sig", newline="") as handle:
            records = list(parse_records(handle))
    except OSError as exc:
        raise CsvParseError(f"Unable to read CSV file {path}: {exc}") from exc

    logger.bind(event="csv_sync.parse", path=str(path), records=len(records)).debug(
        "Parsed CSV snapshot",
    )
    return records


__all__ = [
    "DEPARTMENT_COLUMN",
    "REQUIRED_COLUMNS",
    "USERNAME_COLUMN",
    "parse_file",
    "parse_records",
]
