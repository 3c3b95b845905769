"""Tests for the comparison engine."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone

import pytest

from scandelta.analysis.compare import compare_plugins, compare_reports, ip_sort_key
from scandelta.schemas.report import HostOut, ReportData, ReportOut, VulnerabilityOut

_ids = itertools.count(1)


def make_report(report_id: int, findings: dict[str, list[tuple]]) -> ReportData:
    """findings maps IP -> [(plugin_id, port, severity[, protocol]), ...]."""
    when = datetime(2024, 1, report_id, tzinfo=timezone.utc)
    report = ReportOut(
        id=report_id,
        filename=f"r{report_id}.nessus",
        scan_name=f"Report {report_id}",
        scan_date=when,
        imported_at=when,
    )
    hosts, vulns = [], []
    for ip, items in findings.items():
        host = HostOut(id=next(_ids), report_id=report_id, hostname=f"h-{ip}", ip_address=ip)
        hosts.append(host)
        for plugin_id, port, severity, *protocol in items:
            vulns.append(
                VulnerabilityOut(
                    id=next(_ids),
                    report_id=report_id,
                    host_id=host.id,
                    plugin_id=plugin_id,
                    plugin_name=f"Plugin {plugin_id}",
                    severity=severity,
                    port=port,
                    protocol=protocol[0] if protocol else None,
                )
            )
    return ReportData(report=report, hosts=hosts, vulnerabilities=vulns)


def _keys(entries) -> set[tuple[str, int, int, str]]:
    return {e.key for e in entries}


def test_new_resolved_persistent():
    a = make_report(1, {"10.0.0.1": [(1000, 0, 4), (2000, 0, 2)]})
    b = make_report(2, {"10.0.0.1": [(1000, 0, 4), (3000, 0, 3)]})

    delta = compare_reports(a, b)

    assert [e.plugin_id for e in delta.new] == [3000]
    assert [e.plugin_id for e in delta.resolved] == [2000]
    assert [e.plugin_id for e in delta.persistent] == [1000]
    assert delta.persistent[0].before is not None
    assert delta.persistent[0].after is not None
    assert delta.new[0].before is None
    assert delta.resolved[0].after is None
    assert [m.ip_address for m in delta.common_hosts] == ["10.0.0.1"]


REPORT_PAIRS = [
    (
        {"10.0.0.1": [(1, 0, 4), (2, 22, 2)], "10.0.0.2": [(3, 80, 1)]},
        {"10.0.0.1": [(1, 0, 4), (4, 443, 3)], "10.0.0.3": [(5, 0, 0)]},
    ),
    (
        {"10.0.0.1": [(1, 22, 1), (1, 80, 2)]},
        {"10.0.0.1": [(1, 80, 3), (1, 443, 4)], "10.0.0.2": []},
    ),
    ({}, {"10.0.0.9": [(9, 0, 2)]}),
]


@pytest.mark.parametrize("findings_a, findings_b", REPORT_PAIRS)
def test_comparison_symmetry(findings_a, findings_b):
    a = make_report(1, findings_a)
    b = make_report(2, findings_b)

    ab = compare_reports(a, b)
    ba = compare_reports(b, a)

    assert _keys(ab.new) == _keys(ba.resolved)
    assert _keys(ab.resolved) == _keys(ba.new)
    assert _keys(ab.persistent) == _keys(ba.persistent)
    assert _keys(ab.unmeasured_in_a) == _keys(ba.unmeasured_in_b)


@pytest.mark.parametrize("findings_a, findings_b", REPORT_PAIRS)
def test_severity_bucket_totals(findings_a, findings_b):
    delta = compare_reports(make_report(1, findings_a), make_report(2, findings_b))
    for entries, counts in (
        (delta.new, delta.new_counts),
        (delta.resolved, delta.resolved_counts),
        (delta.persistent, delta.persistent_counts),
    ):
        assert counts.critical + counts.high + counts.medium + counts.low + counts.info == len(entries)
        assert counts.total == len(entries)


def test_findings_on_one_sided_hosts_are_unmeasured():
    a = make_report(1, {"10.0.0.1": [(1, 0, 2)], "10.0.0.2": [(7, 0, 4)]})
    b = make_report(2, {"10.0.0.1": [(1, 0, 2)], "10.0.0.3": [(8, 0, 4)]})

    delta = compare_reports(a, b)

    correlated = _keys(delta.new) | _keys(delta.resolved) | _keys(delta.persistent)
    assert ("10.0.0.3", 8, 0, "") not in correlated
    assert ("10.0.0.2", 7, 0, "") not in correlated
    assert _keys(delta.unmeasured_in_a) == {("10.0.0.3", 8, 0, "")}
    assert _keys(delta.unmeasured_in_b) == {("10.0.0.2", 7, 0, "")}
    assert [h.ip_address for h in delta.hosts_only_in_a] == ["10.0.0.2"]
    assert [h.ip_address for h in delta.hosts_only_in_b] == ["10.0.0.3"]
    assert delta.unmeasured_in_a_counts.critical == 1
    assert delta.unmeasured_in_b_counts.critical == 1
    assert delta.unmeasured_in_a_counts.total == len(delta.unmeasured_in_a)


def test_port_is_part_of_identity():
    a = make_report(1, {"10.0.0.1": [(1, 22, 1)]})
    b = make_report(2, {"10.0.0.1": [(1, 80, 1)]})
    delta = compare_reports(a, b)
    assert _keys(delta.new) == {("10.0.0.1", 1, 80, "")}
    assert _keys(delta.resolved) == {("10.0.0.1", 1, 22, "")}
    assert delta.persistent == []


def test_protocol_is_part_of_identity():
    a = make_report(1, {"10.0.0.1": [(11002, 53, 0, "tcp"), (11002, 53, 0, "udp")]})
    b = make_report(2, {"10.0.0.1": [(11002, 53, 0, "udp")]})
    delta = compare_reports(a, b)
    assert _keys(delta.persistent) == {("10.0.0.1", 11002, 53, "udp")}
    assert _keys(delta.resolved) == {("10.0.0.1", 11002, 53, "tcp")}
    assert delta.resolved[0].protocol == "tcp"
    assert delta.new == []


def test_severity_change_is_flagged_on_persistent():
    a = make_report(1, {"10.0.0.1": [(1, 0, 2)]})
    b = make_report(2, {"10.0.0.1": [(1, 0, 4)]})
    entry = compare_reports(a, b).persistent[0]
    assert entry.severity == 4
    assert entry.severity_changed


def test_output_ordering_plugin_then_numeric_ip_then_port():
    b = make_report(
        2,
        {
            "10.0.0.10": [(5, 80, 1), (5, 22, 1)],
            "10.0.0.9": [(5, 443, 1), (1, 0, 1)],
        },
    )
    a = make_report(1, {"10.0.0.10": [], "10.0.0.9": []})
    new = compare_reports(a, b).new
    assert [e.key for e in new] == [
        ("10.0.0.9", 1, 0, ""),
        ("10.0.0.9", 5, 443, ""),
        ("10.0.0.10", 5, 22, ""),
        ("10.0.0.10", 5, 80, ""),
    ]


def test_ip_sort_key_orders_numerically_and_puts_garbage_last():
    ips = ["10.0.0.10", "not-an-ip", "10.0.0.2", "::1"]
    assert sorted(ips, key=ip_sort_key) == ["10.0.0.2", "10.0.0.10", "::1", "not-an-ip"]


def test_compare_plugins_ignores_hosts():
    a = make_report(1, {"10.0.0.1": [(1, 0, 2), (2, 0, 4)], "10.0.0.2": [(1, 0, 3)]})
    b = make_report(2, {"10.0.0.5": [(1, 0, 1), (3, 0, 0)]})

    delta = compare_plugins(a, b)

    assert [p.plugin_id for p in delta.only_in_a] == [2]
    assert [p.plugin_id for p in delta.only_in_b] == [3]
    assert [p.plugin_id for p in delta.common] == [1]
    assert delta.only_in_a_counts.critical == 1
    assert delta.common[0].host_count == 1


def test_plugin_summary_keeps_max_severity_and_counts_hosts():
    a = make_report(1, {"10.0.0.1": [(1, 22, 2), (1, 80, 3)], "10.0.0.2": [(1, 0, 1)]})
    b = make_report(2, {})
    summary = compare_plugins(a, b).only_in_a[0]
    assert summary.severity == 3
    assert summary.host_count == 2
