"""Core data models for access-log reports."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum


class Field(IntEnum):
    """Fixed 1-based field positions in an access-log line."""

    IP = 1
    STATUS = 9
    BYTES = 10


class ReportMode(str, Enum):
    """Report views available over the aggregation engine."""

    ATTEMPTS = "attempts"
    SUCCESSFUL = "successful"
    STATUS = "status"
    FAILURES = "failures"
    BYTES = "bytes"


@dataclass(frozen=True, slots=True)
class LogRecord:
    """Typed fields extracted from one access-log line."""

    ip: str
    status: int | None = None  # None when field 9 is missing or not three digits
    bytes_sent: int | None = None  # None when field 10 is missing or "-"


@dataclass(frozen=True, slots=True)
class IpCountRow:
    ip: str
    count: int


@dataclass(frozen=True, slots=True)
class StatusIpRow:
    """One distinct (status, ip) pair and the number of lines folded into it."""

    status: int
    ip: str
    count: int


@dataclass(frozen=True, slots=True)
class IpBytesRow:
    ip: str
    total_bytes: int


AggregateRow = IpCountRow | StatusIpRow | IpBytesRow


@dataclass(frozen=True, slots=True)
class Report:
    """Ranked, limit-truncated report rows for one mode."""

    mode: ReportMode
    limit: int
    rows: tuple[AggregateRow, ...]
