"""Turn raw parser output into the canonical Report / Host / Vulnerability model.

Rules:

* Hosts are grouped by canonical IP address. Repeated host blocks are merged:
  their finding lists are concatenated and descriptive fields follow
  "last non-empty wins".
* Findings within a host are keyed by ``finding_key(plugin_id, port, protocol)``.
  Colliding findings are merged: text fields follow "last non-empty wins",
  CVE lists are unioned, severity and CVSS keep the highest value. A
  disagreement on severity or CVSS is logged and recorded as a warning.
* Hosts without a usable IP are dropped and counted, never fatal.

The functions here are pure: the same input always yields equal output.
"""

from __future__ import annotations

import ipaddress
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from scandelta.core.logging import get_logger
from scandelta.core.severity import count_buckets
from scandelta.ingest.records import (
    NormalizedHost,
    NormalizedReport,
    NormalizedScan,
    NormalizedVulnerability,
    RawFinding,
    RawHost,
    ScanMetadata,
    finding_key,
)

logger = get_logger(__name__)

_TEXT_FIELDS = (
    "plugin_name",
    "plugin_family",
    "service",
    "description",
    "solution",
    "synopsis",
    "plugin_output",
)


def canonical_ip(value: str | None) -> str | None:
    """Return the canonical text form of an IPv4/IPv6 address, or None."""
    if not value:
        return None
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def _first_line(value: str | None) -> str | None:
    lines = (value or "").strip().splitlines()
    return lines[0].strip() if lines else None


def _normalize_mac(value: str | None) -> str | None:
    if not value:
        return None
    macs = [m.strip().upper() for m in value.split() if m.strip()]
    return ", ".join(dict.fromkeys(macs)) or None


@dataclass
class _HostGroup:
    ip: str
    hostname: str = ""
    mac: str | None = None
    os: str | None = None
    start_time: datetime | None = None
    findings: dict[tuple[int, int, str], NormalizedVulnerability] = field(default_factory=dict)


class _Normalizer:
    def __init__(self) -> None:
        self.groups: dict[str, _HostGroup] = {}
        self.warnings: list[str] = []
        self.raw_host_count = 0
        self.dropped_host_count = 0

    def add_host(self, raw: RawHost) -> None:
        self.raw_host_count += 1

        ip = canonical_ip(raw.ip) or canonical_ip(raw.name)
        if ip is None and raw.ip and raw.ip.strip():
            # Unparseable but present: keep the scanner's own identity string
            ip = raw.ip.strip()
        if ip is None:
            self.dropped_host_count += 1
            self.warnings.append(f"Dropped host {raw.name!r}: no IP address")
            return

        hostname = (raw.hostname or "").strip()
        if not hostname and raw.name and canonical_ip(raw.name) is None:
            hostname = raw.name.strip()

        group = self.groups.get(ip)
        if group is None:
            group = self.groups[ip] = _HostGroup(ip=ip)
        else:
            self.warnings.append(f"Merged duplicate host block for {ip}")

        if hostname:
            group.hostname = hostname
        group.mac = _normalize_mac(raw.mac) or group.mac
        group.os = _first_line(raw.os) or group.os
        if raw.start_time is not None and (
            group.start_time is None or raw.start_time < group.start_time
        ):
            group.start_time = raw.start_time

        for finding in raw.findings:
            self._add_finding(group, finding)

    def _add_finding(self, group: _HostGroup, raw: RawFinding) -> None:
        key = finding_key(raw.plugin_id, raw.port, raw.protocol)
        current = group.findings.get(key)
        if current is None:
            group.findings[key] = NormalizedVulnerability(
                host_ip=group.ip,
                plugin_id=raw.plugin_id,
                plugin_name=raw.plugin_name,
                plugin_family=raw.plugin_family,
                severity=raw.severity,
                port=raw.port,
                protocol=raw.protocol.lower() if raw.protocol else None,
                service=raw.service,
                description=raw.description,
                solution=raw.solution,
                synopsis=raw.synopsis,
                plugin_output=raw.plugin_output,
                cves=list(raw.cves),
                cvss_score=raw.cvss_score,
            )
            return

        where = f"{group.ip} plugin {raw.plugin_id} port {raw.port}/{raw.protocol or '?'}"
        if raw.severity != current.severity:
            message = (
                f"Conflicting severity for {where}: "
                f"{current.severity} vs {raw.severity}, keeping {max(current.severity, raw.severity)}"
            )
            logger.warning(
                "Conflicting finding severity",
                ip=group.ip,
                plugin_id=raw.plugin_id,
                port=raw.port,
                severities=[current.severity, raw.severity],
            )
            self.warnings.append(message)
            current.severity = max(current.severity, raw.severity)

        if raw.cvss_score is not None:
            if current.cvss_score is None:
                current.cvss_score = raw.cvss_score
            elif raw.cvss_score != current.cvss_score:
                kept = max(current.cvss_score, raw.cvss_score)
                logger.warning(
                    "Conflicting finding CVSS score",
                    ip=group.ip,
                    plugin_id=raw.plugin_id,
                    port=raw.port,
                    scores=[current.cvss_score, raw.cvss_score],
                )
                self.warnings.append(
                    f"Conflicting CVSS for {where}: "
                    f"{current.cvss_score} vs {raw.cvss_score}, keeping {kept}"
                )
                current.cvss_score = kept

        for name in _TEXT_FIELDS:
            value = getattr(raw, name)
            if value:
                setattr(current, name, value)

        current.cves = list(dict.fromkeys([*current.cves, *raw.cves]))

    def hosts_and_vulnerabilities(
        self,
    ) -> tuple[list[NormalizedHost], list[NormalizedVulnerability]]:
        hosts: list[NormalizedHost] = []
        vulnerabilities: list[NormalizedVulnerability] = []
        for group in self.groups.values():
            findings = list(group.findings.values())
            counts = count_buckets(f.severity for f in findings)
            hosts.append(
                NormalizedHost(
                    ip_address=group.ip,
                    hostname=group.hostname,
                    mac_address=group.mac,
                    os=group.os,
                    total=len(findings),
                    **counts,
                )
            )
            vulnerabilities.extend(findings)
        return hosts, vulnerabilities

    def earliest_start(self) -> datetime | None:
        starts = [g.start_time for g in self.groups.values() if g.start_time is not None]
        return min(starts) if starts else None


def normalize_scan(
    filename: str,
    metadata: ScanMetadata,
    raw_hosts: Iterable[RawHost],
    *,
    parser_warnings: Iterable[str] = (),
    imported_at: datetime | None = None,
    on_host: Callable[[RawHost], None] | None = None,
) -> NormalizedScan:
    """Normalize a stream of raw hosts into one ``NormalizedScan``.

    ``raw_hosts`` may be a lazy iterator; it is consumed exactly once.
    ``metadata`` is read only after the stream is exhausted, so a parser's
    metadata object can be passed while its hosts are still being yielded.
    ``parser_warnings`` is likewise read at the end. ``on_host`` is invoked
    once per raw host after it has been merged.
    """
    normalizer = _Normalizer()
    for raw in raw_hosts:
        normalizer.add_host(raw)
        if on_host is not None:
            on_host(raw)

    hosts, vulnerabilities = normalizer.hosts_and_vulnerabilities()

    scan_date = (
        metadata.scan_start
        or normalizer.earliest_start()
        or imported_at
        or datetime.now(timezone.utc)
    )
    scan_metadata = metadata.as_dict()
    scan_name = (
        metadata.report_name
        or scan_metadata.get("scan_name")
        or metadata.policy_name
        or filename
    )

    report = NormalizedReport(
        filename=filename,
        scan_name=str(scan_name),
        scan_date=scan_date,
        scan_metadata=scan_metadata,
    )
    return NormalizedScan(
        report=report,
        hosts=hosts,
        vulnerabilities=vulnerabilities,
        warnings=[*parser_warnings, *normalizer.warnings],
        raw_host_count=normalizer.raw_host_count,
        dropped_host_count=normalizer.dropped_host_count,
    )
