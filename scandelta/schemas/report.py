"""Schemas for Report, Host and Vulnerability records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from scandelta.ingest.records import split_cves


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    filename: str
    scan_name: str
    scan_date: datetime
    imported_at: datetime
    total_hosts: int = 0
    total_vulnerabilities: int = 0

    @field_validator("scan_date", "imported_at")
    @classmethod
    def _ensure_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class HostOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    report_id: int
    hostname: str
    ip_address: str
    mac_address: str | None = None
    os: str | None = None
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    info: int = 0
    total: int = 0


class VulnerabilityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    report_id: int
    host_id: int
    plugin_id: int
    plugin_name: str = ""
    plugin_family: str = ""
    severity: int = Field(default=0, ge=0, le=4)
    port: int = 0
    protocol: str | None = None
    service: str | None = None
    description: str | None = None
    solution: str | None = None
    synopsis: str | None = None
    plugin_output: str | None = None
    cves: list[str] = Field(default_factory=list)
    cvss_score: float | None = None

    @field_validator("cves", mode="before")
    @classmethod
    def _split_cves(cls, v: Any) -> list[str]:
        """Accept the legacy comma-joined form as well as a list."""
        return split_cves(v)


class ReportItemOut(VulnerabilityOut):
    """A vulnerability flattened with its host's identity, one row per finding."""

    hostname: str
    ip_address: str
    mac_address: str | None = None


class ReportDetails(BaseModel):
    report: ReportOut
    hosts: list[HostOut]


class ReportData(BaseModel):
    """A report fully materialized in memory, ready for comparison or trends."""

    report: ReportOut
    hosts: list[HostOut]
    vulnerabilities: list[VulnerabilityOut]
