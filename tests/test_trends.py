"""Tests for the trend aggregator."""

from __future__ import annotations

from datetime import datetime, timezone

from scandelta.analysis.trends import compute_trends
from scandelta.schemas.report import ReportData, ReportOut, VulnerabilityOut


def _data(report_id: int, when: datetime, severities: list[int], name: str = "") -> ReportData:
    report = ReportOut(
        id=report_id,
        filename=f"scan-{report_id}.nessus",
        scan_name=name,
        scan_date=when,
        imported_at=when,
    )
    vulns = [
        VulnerabilityOut(id=i, report_id=report_id, host_id=1, plugin_id=i, severity=s)
        for i, s in enumerate(severities, start=1)
    ]
    return ReportData(report=report, hosts=[], vulnerabilities=vulns)


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def test_rows_are_ordered_by_scan_date():
    rows = compute_trends(
        [
            _data(1, _utc(2024, 1, 1), [4]),
            _data(2, _utc(2023, 6, 1), [3]),
            _data(3, _utc(2024, 6, 1), [2]),
        ]
    )
    assert [r.scan_date.date().isoformat() for r in rows] == [
        "2023-06-01",
        "2024-01-01",
        "2024-06-01",
    ]
    assert [r.report_id for r in rows] == [2, 1, 3]


def test_ties_break_by_report_id():
    same = _utc(2024, 1, 1)
    rows = compute_trends([_data(7, same, []), _data(3, same, [])])
    assert [r.report_id for r in rows] == [3, 7]


def test_bucket_counts_and_label():
    rows = compute_trends([_data(1, _utc(2024, 1, 1), [4, 4, 3, 2, 1, 0, 0], name="Weekly")])
    row = rows[0]
    assert (row.critical, row.high, row.medium, row.low, row.info) == (2, 1, 1, 1, 2)
    assert row.total == 7
    assert row.label == "Weekly"


def test_label_falls_back_to_filename():
    row = compute_trends([_data(4, _utc(2024, 1, 1), [])])[0]
    assert row.label == "scan-4.nessus"
    assert row.total == 0


def test_empty_input():
    assert compute_trends([]) == []
