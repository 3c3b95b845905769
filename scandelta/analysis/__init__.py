"""Pure comparison and trend engines over materialized reports."""

from scandelta.analysis.compare import compare_plugins, compare_reports
from scandelta.analysis.trends import compute_trends

__all__ = ["compare_plugins", "compare_reports", "compute_trends"]
