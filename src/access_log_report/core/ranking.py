"""Ordering and truncation of aggregated rows."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from .models import AggregateRow, IpBytesRow, IpCountRow, StatusIpRow

UNLIMITED = -1

SortKey = Callable[[Any], Any]


def _magnitude(row: IpCountRow | IpBytesRow) -> int:
    return row.total_bytes if isinstance(row, IpBytesRow) else row.count


def by_count_desc(row: IpCountRow | IpBytesRow) -> tuple[int, str]:
    """Largest count (or byte total) first; ties by IP."""
    return -_magnitude(row), row.ip


def by_status_then_count(row: StatusIpRow) -> tuple[int, int, str]:
    """Status ascending, then count descending within a status; ties by IP."""
    return row.status, -row.count, row.ip


def validate_limit(limit: int) -> int:
    if limit < UNLIMITED:
        raise ValueError(f"limit must be >= 0 or {UNLIMITED} for no limit")
    return limit


def rank(rows: Iterable[AggregateRow], order: SortKey, limit: int = UNLIMITED) -> list[AggregateRow]:
    """Sort rows by the given key and keep the first `limit` of them."""
    validate_limit(limit)
    if limit == 0:
        return []
    ranked = sorted(rows, key=order)
    if limit == UNLIMITED:
        return ranked
    return ranked[:limit]
