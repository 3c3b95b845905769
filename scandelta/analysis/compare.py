"""Cross-report comparison by natural key.

Hosts are correlated by IP address and findings by
``(ip, plugin_id, port, protocol)``.
Surrogate ids are never compared across reports. Both inputs must be fully
materialized ``ReportData``; nothing here touches the store.

Report A is taken to be the older scan and report B the newer one. The
engine does not reorder its arguments: swapping them swaps ``new`` and
``resolved``.
"""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable

from scandelta.core.logging import get_logger
from scandelta.ingest.records import finding_key
from scandelta.schemas.analysis import (
    Delta,
    DeltaEntry,
    HostMatch,
    PluginDelta,
    PluginSummary,
    SeverityCounts,
)
from scandelta.schemas.report import HostOut, ReportData, VulnerabilityOut

logger = get_logger(__name__)

FindingKey = tuple[str, int, int, str]


def ip_sort_key(value: str) -> tuple[int, int, int, str]:
    """Numeric ordering for addresses; unparseable strings sort last, by text."""
    try:
        addr = ipaddress.ip_address(value)
    except ValueError:
        return (1, 0, 0, value)
    return (0, addr.version, int(addr), "")


def _entry_sort_key(entry: DeltaEntry) -> tuple:
    return (entry.plugin_id, ip_sort_key(entry.ip_address), entry.port, entry.protocol or "")


def _index_findings(data: ReportData) -> dict[FindingKey, tuple[HostOut, VulnerabilityOut]]:
    hosts_by_id = {h.id: h for h in data.hosts}
    index: dict[FindingKey, tuple[HostOut, VulnerabilityOut]] = {}
    for vuln in data.vulnerabilities:
        host = hosts_by_id.get(vuln.host_id)
        if host is None:
            logger.debug(
                "Vulnerability without host in report data",
                report_id=data.report.id,
                vulnerability_id=vuln.id,
            )
            continue
        key = (host.ip_address, *finding_key(vuln.plugin_id, vuln.port, vuln.protocol))
        index.setdefault(key, (host, vuln))
    return index


def _entry(
    host: HostOut,
    current: VulnerabilityOut,
    before: VulnerabilityOut | None = None,
    after: VulnerabilityOut | None = None,
) -> DeltaEntry:
    """Build a delta entry whose descriptive fields come from ``current``."""
    return DeltaEntry(
        ip_address=host.ip_address,
        hostname=host.hostname,
        plugin_id=current.plugin_id,
        port=current.port,
        protocol=current.protocol,
        plugin_name=current.plugin_name,
        plugin_family=current.plugin_family,
        severity=current.severity,
        before=before,
        after=after,
    )


def _sorted(entries: Iterable[DeltaEntry]) -> list[DeltaEntry]:
    return sorted(entries, key=_entry_sort_key)


def _counts(entries: list[DeltaEntry]) -> SeverityCounts:
    return SeverityCounts.from_severities(e.severity for e in entries)


def compare_reports(a: ReportData, b: ReportData) -> Delta:
    """Diff report A (older) against report B (newer).

    ``new``, ``resolved`` and ``persistent`` are computed over common hosts
    only. Findings on a host missing from the other report are listed under
    ``unmeasured_in_b`` / ``unmeasured_in_a`` instead.
    """
    hosts_a = {h.ip_address: h for h in a.hosts}
    hosts_b = {h.ip_address: h for h in b.hosts}
    common_ips = hosts_a.keys() & hosts_b.keys()
    only_a_ips = hosts_a.keys() - common_ips
    only_b_ips = hosts_b.keys() - common_ips

    findings_a = _index_findings(a)
    findings_b = _index_findings(b)

    new: list[DeltaEntry] = []
    resolved: list[DeltaEntry] = []
    persistent: list[DeltaEntry] = []
    unmeasured_in_b: list[DeltaEntry] = []
    unmeasured_in_a: list[DeltaEntry] = []

    for key, (host, vuln) in findings_a.items():
        ip = key[0]
        if ip in only_a_ips:
            unmeasured_in_b.append(_entry(host, vuln, before=vuln))
        elif key in findings_b:
            after = findings_b[key][1]
            persistent.append(_entry(host, after, before=vuln, after=after))
        else:
            resolved.append(_entry(host, vuln, before=vuln))

    for key, (host, vuln) in findings_b.items():
        if key[0] in only_b_ips:
            unmeasured_in_a.append(_entry(host, vuln, after=vuln))
        elif key not in findings_a:
            new.append(_entry(host, vuln, after=vuln))

    delta = Delta(
        report_a=a.report,
        report_b=b.report,
        common_hosts=[
            HostMatch(ip_address=ip, host_a=hosts_a[ip], host_b=hosts_b[ip])
            for ip in sorted(common_ips, key=ip_sort_key)
        ],
        hosts_only_in_a=[hosts_a[ip] for ip in sorted(only_a_ips, key=ip_sort_key)],
        hosts_only_in_b=[hosts_b[ip] for ip in sorted(only_b_ips, key=ip_sort_key)],
        new=_sorted(new),
        resolved=_sorted(resolved),
        persistent=_sorted(persistent),
        unmeasured_in_b=_sorted(unmeasured_in_b),
        unmeasured_in_a=_sorted(unmeasured_in_a),
    )
    delta.new_counts = _counts(delta.new)
    delta.resolved_counts = _counts(delta.resolved)
    delta.persistent_counts = _counts(delta.persistent)
    delta.unmeasured_in_b_counts = _counts(delta.unmeasured_in_b)
    delta.unmeasured_in_a_counts = _counts(delta.unmeasured_in_a)

    logger.info(
        "Reports compared",
        report_a=a.report.id,
        report_b=b.report.id,
        common_hosts=len(delta.common_hosts),
        new=len(delta.new),
        resolved=len(delta.resolved),
        persistent=len(delta.persistent),
    )
    return delta


# ── Report-wide plugin comparison ────────────────────────────────────────────


def _summarize_plugins(data: ReportData) -> dict[int, PluginSummary]:
    hosts: dict[int, set[int]] = {}
    summaries: dict[int, PluginSummary] = {}
    for vuln in data.vulnerabilities:
        summary = summaries.get(vuln.plugin_id)
        if summary is None:
            summary = summaries[vuln.plugin_id] = PluginSummary(
                plugin_id=vuln.plugin_id,
                plugin_name=vuln.plugin_name,
                severity=vuln.severity,
            )
        else:
            summary.severity = max(summary.severity, vuln.severity)
        hosts.setdefault(vuln.plugin_id, set()).add(vuln.host_id)
    for plugin_id, summary in summaries.items():
        summary.host_count = len(hosts[plugin_id])
    return summaries


def compare_plugins(a: ReportData, b: ReportData) -> PluginDelta:
    """Compare the sets of plugin ids seen anywhere in each report.

    Host identity is ignored. Common plugins are summarized from report B.
    """
    plugins_a = _summarize_plugins(a)
    plugins_b = _summarize_plugins(b)

    only_in_a = [plugins_a[p] for p in sorted(plugins_a.keys() - plugins_b.keys())]
    only_in_b = [plugins_b[p] for p in sorted(plugins_b.keys() - plugins_a.keys())]
    common = [plugins_b[p] for p in sorted(plugins_a.keys() & plugins_b.keys())]

    return PluginDelta(
        only_in_a=only_in_a,
        only_in_b=only_in_b,
        common=common,
        only_in_a_counts=SeverityCounts.from_severities(p.severity for p in only_in_a),
        only_in_b_counts=SeverityCounts.from_severities(p.severity for p in only_in_b),
        common_counts=SeverityCounts.from_severities(p.severity for p in common),
    )
