from __future__ import annotations

from access_log_report.core.aggregate import count_by, distinct_pairs, ip_key, status_ip_key, sum_by
from access_log_report.core.models import LogRecord, StatusIpRow


def test_count_by_ip_skips_empty_ip() -> None:
    records = [
        LogRecord(ip="10.0.0.1"),
        LogRecord(ip="10.0.0.1"),
        LogRecord(ip="10.0.0.2"),
        LogRecord(ip=""),
    ]
    assert dict(count_by(records, ip_key)) == {"10.0.0.1": 2, "10.0.0.2": 1}


def test_sum_by_skips_missing_values() -> None:
    records = [
        LogRecord(ip="10.0.0.1", bytes_sent=500),
        LogRecord(ip="10.0.0.1", bytes_sent=None),
        LogRecord(ip="10.0.0.1", bytes_sent=12),
        LogRecord(ip="10.0.0.2", bytes_sent=None),
        LogRecord(ip="10.0.0.3", bytes_sent=0),
    ]
    sums = sum_by(records, ip_key, lambda r: r.bytes_sent)
    assert sums == {"10.0.0.1": 512, "10.0.0.3": 0}


def test_distinct_pairs_folds_duplicates_with_counts() -> None:
    records = [
        LogRecord(ip="10.0.0.1", status=404),
        LogRecord(ip="10.0.0.1", status=404),
        LogRecord(ip="10.0.0.1", status=200),
        LogRecord(ip="10.0.0.2", status=404),
        LogRecord(ip="10.0.0.2", status=None),
    ]
    rows = sorted(distinct_pairs(records), key=lambda r: (r.status, r.ip))
    assert rows == [
        StatusIpRow(status=200, ip="10.0.0.1", count=1),
        StatusIpRow(status=404, ip="10.0.0.1", count=2),
        StatusIpRow(status=404, ip="10.0.0.2", count=1),
    ]


def test_distinct_pairs_differs_from_ip_only_counts() -> None:
    records = [LogRecord(ip="10.0.0.1", status=s) for s in (200, 404, 500)]
    assert dict(count_by(records, ip_key)) == {"10.0.0.1": 3}
    assert len(distinct_pairs(records)) == 3
    assert all(r.count == 1 for r in distinct_pairs(records))


def test_status_ip_key_requires_status() -> None:
    assert status_ip_key(LogRecord(ip="10.0.0.1")) is None
    assert status_ip_key(LogRecord(ip="10.0.0.1", status=301)) == (301, "10.0.0.1")


def test_no_rows_for_empty_input() -> None:
    assert distinct_pairs([]) == []
    assert sum_by([], ip_key, lambda r: r.bytes_sent) == {}
