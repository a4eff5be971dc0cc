"""Grouping and counting over extracted log records."""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Hashable, Iterable
from typing import TypeVar

from .models import LogRecord, StatusIpRow

K = TypeVar("K", bound=Hashable)


def count_by(records: Iterable[LogRecord], key_of: Callable[[LogRecord], K | None]) -> Counter[K]:
    """Count records per key; records whose key is None are skipped."""
    counts: Counter[K] = Counter()
    for record in records:
        key = key_of(record)
        if key is None:
            continue
        counts[key] += 1
    return counts


def sum_by(
    records: Iterable[LogRecord],
    key_of: Callable[[LogRecord], K | None],
    value_of: Callable[[LogRecord], int | None],
) -> dict[K, int]:
    """Sum a numeric field per key, skipping records without a value."""
    sums: dict[K, int] = {}
    for record in records:
        key = key_of(record)
        value = value_of(record)
        if key is None or value is None:
            continue
        sums[key] = sums.get(key, 0) + value
    return sums


def ip_key(record: LogRecord) -> str | None:
    return record.ip or None


def status_ip_key(record: LogRecord) -> tuple[int, str] | None:
    if record.status is None or not record.ip:
        return None
    return record.status, record.ip


def distinct_pairs(records: Iterable[LogRecord]) -> list[StatusIpRow]:
    """Collapse the (status, ip) stream into distinct pairs.

    Each pair keeps the number of original lines folded into it. The result
    is unordered; ranking happens afterwards over all pairs together.
    """
    pairs = count_by(records, status_ip_key)
    return [StatusIpRow(status=status, ip=ip, count=n) for (status, ip), n in pairs.items()]
