"""Plain records flowing through the import pipeline.

``Raw*`` records are what the parser extracts, untouched. ``Normalized*``
records are the canonical entities handed to the report store; they carry
natural keys only; surrogate ids are assigned by the store.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

MetadataValue = Union[str, int, float, bool, list[str]]

_CVE_SPLIT_RE = re.compile(r"[\s,;]+")


def finding_key(plugin_id: int, port: int, protocol: str | None = None) -> tuple[int, int, str]:
    """Identity of a finding within one host.

    Port and protocol are part of identity so that the same plugin reported
    on two ports, or on 53/tcp and 53/udp, stays two findings. A missing
    protocol compares equal to the empty string.
    """
    return (plugin_id, port, (protocol or "").lower())


def split_cves(value: str | Iterable[str] | None) -> list[str]:
    """Convert a joined CVE string (or iterable) to an ordered, de-duplicated list."""
    if value is None:
        return []
    parts = _CVE_SPLIT_RE.split(value) if isinstance(value, str) else value
    seen: dict[str, None] = {}
    for part in parts:
        cve = part.strip().upper()
        if cve:
            seen.setdefault(cve, None)
    return list(seen)


@dataclass(slots=True)
class RawFinding:
    plugin_id: int
    plugin_name: str = ""
    plugin_family: str = ""
    severity: int = 0
    port: int = 0
    protocol: str | None = None
    service: str | None = None
    description: str | None = None
    solution: str | None = None
    synopsis: str | None = None
    plugin_output: str | None = None
    cves: list[str] = field(default_factory=list)
    cvss_score: float | None = None


@dataclass(slots=True)
class RawHost:
    # ReportHost@name: usually the IP, sometimes a DNS name
    name: str
    ip: str | None = None
    hostname: str | None = None
    mac: str | None = None
    os: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    findings: list[RawFinding] = field(default_factory=list)


@dataclass(slots=True)
class ScanMetadata:
    report_name: str | None = None
    policy_name: str | None = None
    scan_start: datetime | None = None
    values: dict[str, MetadataValue] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, MetadataValue]:
        """Flatten into the open key/value map stored with the report."""
        out: dict[str, MetadataValue] = {}
        if self.policy_name:
            out["policy_name"] = self.policy_name
        out.update(self.values)
        if self.warnings:
            out["warnings"] = list(self.warnings)
        return out


@dataclass(slots=True)
class NormalizedReport:
    filename: str
    scan_name: str
    scan_date: datetime
    scan_metadata: dict[str, MetadataValue] = field(default_factory=dict)


@dataclass(slots=True)
class NormalizedHost:
    ip_address: str
    hostname: str = ""
    mac_address: str | None = None
    os: str | None = None
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    info: int = 0
    total: int = 0


@dataclass(slots=True)
class NormalizedVulnerability:
    host_ip: str
    plugin_id: int
    plugin_name: str = ""
    plugin_family: str = ""
    severity: int = 0
    port: int = 0
    protocol: str | None = None
    service: str | None = None
    description: str | None = None
    solution: str | None = None
    synopsis: str | None = None
    plugin_output: str | None = None
    cves: list[str] = field(default_factory=list)
    cvss_score: float | None = None

    @property
    def key(self) -> tuple[str, int, int, str]:
        return (self.host_ip, *finding_key(self.plugin_id, self.port, self.protocol))


@dataclass(slots=True)
class NormalizedScan:
    report: NormalizedReport
    hosts: list[NormalizedHost]
    vulnerabilities: list[NormalizedVulnerability]
    warnings: list[str] = field(default_factory=list)
    raw_host_count: int = 0
    dropped_host_count: int = 0
