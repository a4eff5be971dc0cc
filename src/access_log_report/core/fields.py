"""Fixed-offset field extraction for access-log lines."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator

from .models import Field, LogRecord

_STATUS_RE = re.compile(r"[0-9]{3}")
_BYTES_RE = re.compile(r"[0-9]+")
NO_DATA = "-"


def field_at(fields: list[str], field: Field) -> str | None:
    """Return the 1-based field, or None when the line is too short."""
    index = int(field) - 1
    if index >= len(fields):
        return None
    return fields[index]


def _parse_status(raw: str | None) -> int | None:
    if raw is None or not _STATUS_RE.fullmatch(raw):
        return None
    return int(raw)


def _parse_bytes(raw: str | None) -> int | None:
    if raw is None or raw == NO_DATA or not _BYTES_RE.fullmatch(raw):
        return None
    return int(raw)


def extract(line: str) -> LogRecord:
    """Split a line on single spaces and read the fixed-offset fields.

    Consecutive spaces yield empty fields, so offsets are never shifted by
    collapsing whitespace. Short or malformed lines produce partial records.
    """
    fields = line.rstrip("\r\n").split(" ")
    return LogRecord(
        ip=fields[0],
        status=_parse_status(field_at(fields, Field.STATUS)),
        bytes_sent=_parse_bytes(field_at(fields, Field.BYTES)),
    )


def extract_many(lines: Iterable[str]) -> Iterator[LogRecord]:
    """Extract records from every non-blank line."""
    for line in lines:
        if not line.strip():
            continue
        yield extract(line)
