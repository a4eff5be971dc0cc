"""Report modes: filtering, aggregation and ranking per view, plus formatting."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from .aggregate import count_by, distinct_pairs, ip_key, sum_by
from .models import AggregateRow, IpBytesRow, IpCountRow, LogRecord, Report, ReportMode, StatusIpRow
from .ranking import UNLIMITED, by_count_desc, by_status_then_count, rank, validate_limit


def is_successful(record: LogRecord) -> bool:
    """1xx, 2xx and 3xx responses."""
    return record.status is not None and 100 <= record.status <= 399


def is_failure(record: LogRecord) -> bool:
    """4xx and 5xx responses."""
    return record.status is not None and 400 <= record.status <= 599


def _count_rows(records: Iterable[LogRecord]) -> list[AggregateRow]:
    return [IpCountRow(ip=ip, count=n) for ip, n in count_by(records, ip_key).items()]


def _bytes_rows(records: Iterable[LogRecord]) -> list[AggregateRow]:
    sums = sum_by(records, ip_key, lambda r: r.bytes_sent)
    return [IpBytesRow(ip=ip, total_bytes=total) for ip, total in sums.items()]


@dataclass(frozen=True, slots=True)
class ModeSpec:
    """How one report mode selects, groups and orders records."""

    select: Callable[[LogRecord], bool] | None
    aggregate: Callable[[Iterable[LogRecord]], list[AggregateRow]]
    order: Callable[[Any], Any]
    header: tuple[str, ...]


MODES: dict[ReportMode, ModeSpec] = {
    ReportMode.ATTEMPTS: ModeSpec(None, _count_rows, by_count_desc, ("IP", "Attempts")),
    ReportMode.SUCCESSFUL: ModeSpec(is_successful, _count_rows, by_count_desc, ("IP", "Attempts")),
    ReportMode.STATUS: ModeSpec(None, distinct_pairs, by_status_then_count, ("Code", "IP", "Count")),
    ReportMode.FAILURES: ModeSpec(is_failure, distinct_pairs, by_status_then_count, ("Code", "IP", "Count")),
    ReportMode.BYTES: ModeSpec(None, _bytes_rows, by_count_desc, ("IP", "Bytes")),
}


def parse_mode(value: str | ReportMode) -> ReportMode:
    if isinstance(value, ReportMode):
        return value
    try:
        return ReportMode(value.strip().lower())
    except ValueError as e:
        valid = ", ".join(m.value for m in ReportMode)
        raise ValueError(f"Unknown report mode '{value}'. Valid values: {valid}.") from e


def build_report(records: Iterable[LogRecord], mode: ReportMode, limit: int = UNLIMITED) -> Report:
    """Aggregate and rank records for one mode."""
    validate_limit(limit)
    spec = MODES[mode]
    if spec.select is not None:
        records = (r for r in records if spec.select(r))
    rows = spec.aggregate(records)
    return Report(mode=mode, limit=limit, rows=tuple(rank(rows, spec.order, limit)))


def _format_line(mode: ReportMode, values: tuple[object, ...]) -> str:
    if mode in (ReportMode.STATUS, ReportMode.FAILURES):
        return "%4s  %-15s  %5s" % values
    if mode == ReportMode.BYTES:
        return "%-15s  %10s" % values
    return "%-15s  %8s" % values


def _row_values(row: AggregateRow) -> tuple[object, ...]:
    if isinstance(row, StatusIpRow):
        return row.status, row.ip, row.count
    if isinstance(row, IpBytesRow):
        return row.ip, row.total_bytes
    return row.ip, row.count


def format_report(report: Report) -> list[str]:
    """Header line followed by one fixed-width line per row."""
    lines = [_format_line(report.mode, MODES[report.mode].header)]
    lines.extend(_format_line(report.mode, _row_values(row)) for row in report.rows)
    return lines


def row_to_dict(row: AggregateRow) -> dict[str, Any]:
    if isinstance(row, StatusIpRow):
        return {"status": row.status, "ip": row.ip, "count": row.count}
    if isinstance(row, IpBytesRow):
        return {"ip": row.ip, "bytes": row.total_bytes}
    return {"ip": row.ip, "count": row.count}


def report_to_dict(report: Report) -> dict[str, Any]:
    """JSON-serializable projection of a report."""
    return {
        "mode": report.mode.value,
        "limit": report.limit,
        "count": len(report.rows),
        "rows": [row_to_dict(r) for r in report.rows],
    }
