"""Per-report severity buckets ordered by scan date."""

from __future__ import annotations

from collections.abc import Iterable

from scandelta.core.severity import count_buckets
from scandelta.schemas.analysis import TrendRow
from scandelta.schemas.report import ReportData


def trend_row(data: ReportData) -> TrendRow:
    counts = count_buckets(v.severity for v in data.vulnerabilities)
    return TrendRow(
        report_id=data.report.id,
        label=data.report.scan_name or data.report.filename,
        filename=data.report.filename,
        scan_date=data.report.scan_date,
        total=len(data.vulnerabilities),
        **counts,
    )


def compute_trends(datasets: Iterable[ReportData]) -> list[TrendRow]:
    """One row per report, ascending by scan date, ties by report id."""
    rows = [trend_row(data) for data in datasets]
    rows.sort(key=lambda row: (row.scan_date, row.report_id))
    return rows
