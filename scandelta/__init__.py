"""ScanDelta — Nessus scan ingestion and cross-scan comparison."""

__version__ = "0.1.0"
