"""Tests for the streaming .nessus parser."""

from __future__ import annotations

import io
import threading
from datetime import datetime, timezone

import pytest

from nessus_builder import SCAN_INFO_OUTPUT, host, item, scan
from scandelta.core.errors import ImportCancelled, MalformedScanFile, ScanIOError
from scandelta.ingest.parser import NessusParser, parse_host_time, parse_scan_start


def _parse(xml: str, **kwargs) -> tuple[NessusParser, list]:
    parser = NessusParser(io.BytesIO(xml.encode("utf-8")), **kwargs)
    return parser, list(parser.iter_hosts())


def test_parses_hosts_and_findings():
    xml = scan(
        host(
            "10.0.0.1",
            item(1000, 4, 443, name="Critical thing", family="Web Servers",
                 cves=("cve-2024-0001", "CVE-2024-0002"), cvss3="9.8",
                 description="desc", solution="patch", synopsis="syn"),
            item(2000, 2, 22, protocol="TCP", svc_name="ssh"),
            host_ip="10.0.0.1",
            host_fqdn="web1.example.com",
            mac_address="00:11:22:33:44:55",
            operating_system="Linux Kernel 5.4\nLinux Kernel 5.10",
        )
    )
    parser, hosts = _parse(xml)

    assert len(hosts) == 1
    h = hosts[0]
    assert h.name == "10.0.0.1"
    assert h.ip == "10.0.0.1"
    assert h.hostname == "web1.example.com"
    assert h.mac == "00:11:22:33:44:55"
    assert len(h.findings) == 2

    first = h.findings[0]
    assert first.plugin_id == 1000
    assert first.severity == 4
    assert first.port == 443
    assert first.plugin_name == "Critical thing"
    assert first.plugin_family == "Web Servers"
    assert first.cves == ["CVE-2024-0001", "CVE-2024-0002"]
    assert first.cvss_score == 9.8
    assert first.description == "desc"
    assert first.solution == "patch"

    second = h.findings[1]
    assert second.protocol == "tcp"
    assert second.service == "ssh"
    assert second.cvss_score is None
    assert second.description is None

    assert parser.host_count == 1
    assert parser.finding_count == 2
    assert parser.warnings == []


def test_cvss3_preferred_over_cvss2():
    _, hosts = _parse(scan(host("h", item(1, 3, cvss="5.0", cvss3="7.5"), host_ip="10.0.0.1")))
    assert hosts[0].findings[0].cvss_score == 7.5

    _, hosts = _parse(scan(host("h", item(1, 3, cvss="5.0"), host_ip="10.0.0.1")))
    assert hosts[0].findings[0].cvss_score == 5.0


def test_malformed_cvss3_falls_back_to_cvss2():
    parser, hosts = _parse(
        scan(host("h", item(1, 2, cvss="5.0", cvss3="N/A"), host_ip="10.0.0.1"))
    )
    assert hosts[0].findings[0].cvss_score == 5.0
    assert len(parser.warnings) == 1
    assert "invalid cvss3_base_score 'N/A'" in parser.warnings[0]


def test_malformed_fields_become_warnings():
    xml = scan(
        host(
            "10.0.0.1",
            item(1, "high", 80),
            item(2, 1, "http"),
            item(3, 1, 80, cvss="n/a"),
            item("abc", 1, 80),
            host_ip="10.0.0.1",
        )
    )
    parser, hosts = _parse(xml)

    findings = {f.plugin_id: f for f in hosts[0].findings}
    assert set(findings) == {1, 2, 3}
    assert findings[1].severity == 0
    assert findings[2].port == 0
    assert findings[3].cvss_score is None
    assert len(parser.warnings) == 4
    assert any("invalid plugin id 'abc'" in w for w in parser.warnings)


def test_out_of_range_severity_is_info():
    parser, hosts = _parse(scan(host("h", item(1, 7), host_ip="10.0.0.1")))
    assert hosts[0].findings[0].severity == 0
    assert "invalid severity '7'" in parser.warnings[0]


def test_scan_metadata_from_policy_and_plugin_19506():
    xml = scan(
        host("10.0.0.1", item(19506, 0, output=SCAN_INFO_OUTPUT), host_ip="10.0.0.1"),
        preferences={"port_range": "1-1024", "max_hosts": "10", "unrelated": "x"},
    )
    parser, _ = _parse(xml)
    meta = parser.metadata

    assert meta.report_name == "Weekly internal"
    assert meta.policy_name == "Basic Network Scan"
    assert meta.scan_start == datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)

    values = meta.values
    assert values["nessus_version"] == "10.6.1"
    assert values["plugin_feed_version"] == 202401020304
    assert values["scan_name"] == "Weekly internal"
    assert values["thorough_tests"] is False
    assert values["safe_checks"] is True
    # Plugin output takes precedence over policy preferences
    assert values["max_hosts"] == 30
    assert values["port_range"] == "default"
    assert values["scan_duration"] == 1234
    assert "unrelated" not in values

    flat = meta.as_dict()
    assert flat["policy_name"] == "Basic Network Scan"
    assert "warnings" not in flat


def test_scan_info_warnings_collected():
    output = SCAN_INFO_OUTPUT + "WARNING : No port scanner was enabled\n"
    parser, _ = _parse(scan(host("h", item(19506, output=output), host_ip="10.0.0.1")))
    assert parser.metadata.warnings == ["No port scanner was enabled"]
    assert parser.metadata.as_dict()["warnings"] == ["No port scanner was enabled"]


def test_scan_start_unknown_zone_is_a_warning():
    output = SCAN_INFO_OUTPUT.replace("2024/1/2 10:00 UTC", "2024/1/2 10:00 XYZT")
    parser, _ = _parse(scan(host("h", item(19506, output=output), host_ip="10.0.0.1")))
    assert parser.metadata.scan_start == datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)
    assert any("unknown time zone 'XYZT'" in w for w in parser.warnings)


def test_scan_start_local_zone_is_converted_to_utc():
    output = SCAN_INFO_OUTPUT.replace("2024/1/2 10:00 UTC", "2024/1/2 10:00 EST")
    parser, _ = _parse(scan(host("h", item(19506, output=output), host_ip="10.0.0.1")))
    assert parser.metadata.scan_start == datetime(2024, 1, 2, 15, 0, tzinfo=timezone.utc)
    assert parser.warnings == []


def test_host_times():
    xml = scan(
        host("h", HOST_START="Tue Jan  2 10:00:00 2024", host_ip="10.0.0.1"),
        host("g", HOST_START_TIMESTAMP="1704189600", host_ip="10.0.0.2"),
    )
    _, hosts = _parse(xml)
    expected = datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)
    assert hosts[0].start_time == expected
    assert hosts[1].start_time == expected


def test_hosts_are_streamed_lazily():
    xml = scan(*(host(f"10.0.0.{i}", item(i), host_ip=f"10.0.0.{i}") for i in range(1, 4)))
    parser = NessusParser(io.BytesIO(xml.encode()))
    it = parser.iter_hosts()
    first = next(it)
    assert first.ip == "10.0.0.1"
    assert parser.host_count == 1
    assert len(list(it)) == 2


def test_iter_hosts_consumed_once():
    parser, _ = _parse(scan())
    with pytest.raises(RuntimeError):
        list(parser.iter_hosts())


def test_invalid_xml_raises_malformed():
    with pytest.raises(MalformedScanFile):
        _parse("<NessusClientData_v2><Report>")


def test_wrong_root_raises_malformed():
    with pytest.raises(MalformedScanFile, match="Unexpected root"):
        _parse("<NessusClientData><Report/></NessusClientData>")


def test_missing_report_raises_malformed():
    with pytest.raises(MalformedScanFile, match="Missing <Report>"):
        _parse("<NessusClientData_v2><Policy><policyName>p</policyName></Policy></NessusClientData_v2>")


def test_missing_file_raises_io_error(tmp_path):
    parser = NessusParser(tmp_path / "absent.nessus")
    with pytest.raises(ScanIOError):
        list(parser.iter_hosts())


def test_cancel_event_stops_at_host_boundary():
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(ImportCancelled):
        _parse(scan(host("h", item(1), host_ip="10.0.0.1")), cancel_event=cancel)


def test_empty_report_has_no_hosts():
    parser, hosts = _parse(scan(report_name=None, policy_name=None))
    assert hosts == []
    assert parser.metadata.report_name is None
    assert parser.metadata.policy_name is None


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024/1/2 10:00 UTC", datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)),
        ("2023/12/31 23:59:30", datetime(2023, 12, 31, 23, 59, 30, tzinfo=timezone.utc)),
        ("2024/1/2 10:00 EST", datetime(2024, 1, 2, 15, 0, tzinfo=timezone.utc)),
        ("2024/7/1 09:30 CEST", datetime(2024, 7, 1, 7, 30, tzinfo=timezone.utc)),
        ("2024/1/2 10:00 +0530", datetime(2024, 1, 2, 4, 30, tzinfo=timezone.utc)),
        ("2024/1/2 10:00 XYZT", datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)),
        ("not a date", None),
        (None, None),
    ],
)
def test_parse_scan_start(value, expected):
    assert parse_scan_start(value) == expected


def test_parse_host_time_rejects_garbage():
    assert parse_host_time("yesterday") is None
