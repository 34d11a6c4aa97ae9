"""Loguru setup for the worker: JSON lines, cycle ids and PII redaction."""
from __future__ import annotations

import json
import re
import sys
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any
from uuid import uuid4

from loguru import logger

from apps.csvsync.src.config import Settings, get_settings

_cycle_id_var: ContextVar[str | None] = ContextVar("cycle_id", default=None)

REDACTED = "[REDACTED]"

# Fields naming the person a mapping belongs to.
_IDENTITY_FIELDS = frozenset({"username", "microsoft_username", "user"})
# Raw store responses; the store echoes the submitted mapping on validation errors.
_PAYLOAD_FIELDS = frozenset({"body", "payload", "response"})
_SECRET_MARKERS = ("email", "token", "secret", "password", "authorization")
_ADDRESS_PATTERN = re.compile(r"[^\s\"',;:<>()\[\]{}]+@[^\s\"',;:<>()\[\]{}]+")


def current_cycle_id() -> str | None:
    """Return the id of the reconciliation cycle running in this context."""

    return _cycle_id_var.get()


@contextmanager
def cycle_context(cycle_id: str | None = None) -> Iterator[str]:
    """Tag every record logged inside the block with a cycle id.

    A fresh id is generated when none is given; the id in use is yielded.
    """

    active = cycle_id or uuid4().hex
    token = _cycle_id_var.set(active)
    try:
        yield active
    finally:
        _cycle_id_var.reset(token)


def _must_hide(field: str) -> bool:
    return field in _IDENTITY_FIELDS or any(marker in field for marker in _SECRET_MARKERS)


def _redact_payload(text: str) -> str:
    """Hide identities inside a response body while keeping its shape readable."""

    try:
        decoded = json.loads(text)
    except ValueError:
        return _ADDRESS_PATTERN.sub(REDACTED, text)
    return json.dumps(redact(decoded), ensure_ascii=False)


def redact(value: Any, field: str | None = None) -> Any:
    """Return ``value`` with usernames, secrets and echoed payloads masked."""

    if isinstance(value, Mapping):
        return {name: redact(inner, str(name)) for name, inner in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(item, field) for item in value]
    if field is None or value is None:
        return value

    name = field.lower()
    if _must_hide(name):
        return REDACTED
    if name in _PAYLOAD_FIELDS and isinstance(value, str):
        return _redact_payload(value)
    return value


def _patcher(masking: bool) -> Callable[[Any], None]:
    def _patch(record: Any) -> None:
        extra = record["extra"]
        extra["cycle_id"] = _cycle_id_var.get()
        if masking:
            record["extra"] = redact(extra)

    return _patch


def configure_logging(*, sink: Any | None = None, settings: Settings | None = None) -> None:
    """Route loguru output to ``sink`` (stdout by default) as JSON lines."""

    settings = settings or get_settings()
    logger.remove()
    logger.configure(
        handlers=[
            {
                "sink": sink if sink is not None else sys.stdout,
                "level": settings.log_level.upper(),
                "serialize": True,
                "backtrace": False,
                "diagnose": False,
            }
        ],
        extra={"cycle_id": None},
        patcher=_patcher(settings.pii_masking_enabled),
    )
