"""Schemas for comparison deltas and severity trends."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, computed_field

from scandelta.core.severity import count_buckets
from scandelta.schemas.report import HostOut, ReportOut, VulnerabilityOut


class SeverityCounts(BaseModel):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    info: int = 0

    @computed_field
    @property
    def total(self) -> int:
        return self.critical + self.high + self.medium + self.low + self.info

    @classmethod
    def from_severities(cls, severities) -> "SeverityCounts":
        return cls(**count_buckets(severities))


class HostMatch(BaseModel):
    """The same IP address seen in both reports."""

    ip_address: str
    host_a: HostOut
    host_b: HostOut


class DeltaEntry(BaseModel):
    """One correlated finding, identified by (ip_address, plugin_id, port, protocol).

    ``before`` is the record from report A and ``after`` the record from
    report B; either is None when the finding is absent on that side.
    """

    ip_address: str
    hostname: str = ""
    plugin_id: int
    port: int
    protocol: str | None = None
    plugin_name: str = ""
    plugin_family: str = ""
    severity: int
    before: VulnerabilityOut | None = None
    after: VulnerabilityOut | None = None

    @property
    def key(self) -> tuple[str, int, int, str]:
        return (self.ip_address, self.plugin_id, self.port, (self.protocol or "").lower())

    @computed_field
    @property
    def severity_changed(self) -> bool:
        return (
            self.before is not None
            and self.after is not None
            and self.before.severity != self.after.severity
        )


class Delta(BaseModel):
    """Result of comparing report A (older) with report B (newer).

    ``new``, ``resolved`` and ``persistent`` only cover hosts present in both
    reports. Findings on hosts seen on one side only are *unmeasured* on the
    other side and are listed separately: a host that disappeared is not a
    fixed vulnerability.
    """

    report_a: ReportOut
    report_b: ReportOut

    common_hosts: list[HostMatch] = Field(default_factory=list)
    hosts_only_in_a: list[HostOut] = Field(default_factory=list)
    hosts_only_in_b: list[HostOut] = Field(default_factory=list)

    new: list[DeltaEntry] = Field(default_factory=list)
    resolved: list[DeltaEntry] = Field(default_factory=list)
    persistent: list[DeltaEntry] = Field(default_factory=list)

    # Findings on hosts only in A (so not measured in B), and vice versa
    unmeasured_in_b: list[DeltaEntry] = Field(default_factory=list)
    unmeasured_in_a: list[DeltaEntry] = Field(default_factory=list)

    new_counts: SeverityCounts = Field(default_factory=SeverityCounts)
    resolved_counts: SeverityCounts = Field(default_factory=SeverityCounts)
    persistent_counts: SeverityCounts = Field(default_factory=SeverityCounts)
    unmeasured_in_b_counts: SeverityCounts = Field(default_factory=SeverityCounts)
    unmeasured_in_a_counts: SeverityCounts = Field(default_factory=SeverityCounts)


class PluginSummary(BaseModel):
    plugin_id: int
    plugin_name: str = ""
    severity: int = 0
    host_count: int = 0


class PluginDelta(BaseModel):
    """Report-wide comparison by plugin id, ignoring which hosts are affected."""

    only_in_a: list[PluginSummary] = Field(default_factory=list)
    only_in_b: list[PluginSummary] = Field(default_factory=list)
    common: list[PluginSummary] = Field(default_factory=list)
    only_in_a_counts: SeverityCounts = Field(default_factory=SeverityCounts)
    only_in_b_counts: SeverityCounts = Field(default_factory=SeverityCounts)
    common_counts: SeverityCounts = Field(default_factory=SeverityCounts)


class TrendRow(BaseModel):
    report_id: int
    label: str
    filename: str
    scan_date: datetime
    total: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    info: int = 0


class TrendRequest(BaseModel):
    report_ids: list[int] = Field(..., min_length=1)
