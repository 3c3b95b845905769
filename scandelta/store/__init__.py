"""Persistence for reports, hosts and vulnerabilities."""

from scandelta.store.base import ReportStore, StoreCapabilities
from scandelta.store.sql import SqlReportStore

__all__ = ["ReportStore", "SqlReportStore", "StoreCapabilities"]
