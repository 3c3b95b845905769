"""Streaming parser for Nessus v2 (.nessus) XML exports.

The document is read with ``iterparse`` in a single forward pass. Each
``ReportItem`` is converted and cleared as soon as it closes and each
``ReportHost`` is detached from the tree once yielded, so working memory is
bounded by the findings of one host rather than by the file size.

The parser does structural extraction only. Grouping, merging and identity
are the normalizer's job.

Usage:
    parser = NessusParser("scan.nessus")
    for host in parser.iter_hosts():
        ...
    parser.metadata   # complete once iteration has finished
    parser.warnings   # per-field problems that did not stop the parse
"""

from __future__ import annotations

import re
import threading
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from os import PathLike
from typing import BinaryIO
from xml.etree.ElementTree import Element, ParseError, iterparse

from scandelta.core.errors import ImportCancelled, MalformedScanFile, ScanIOError
from scandelta.core.logging import get_logger
from scandelta.ingest.records import MetadataValue, RawFinding, RawHost, ScanMetadata

logger = get_logger(__name__)

ROOT_TAG = "NessusClientData_v2"

# "Nessus Scan Information": its plugin_output describes the scan itself
SCAN_INFO_PLUGIN_ID = 19506

# Plugin 19506 output label -> metadata key
_SCAN_INFO_LABELS: dict[str, str] = {
    "nessus version": "nessus_version",
    "nessus build": "nessus_build",
    "plugin feed version": "plugin_feed_version",
    "scanner edition used": "scanner_edition",
    "scanner os": "scanner_os",
    "scanner distribution": "scanner_distribution",
    "scan type": "scan_type",
    "scan name": "scan_name",
    "scan policy used": "scan_policy",
    "scanner ip": "scanner_ip",
    "port range": "port_range",
    "ping rtt": "ping_rtt",
    "thorough tests": "thorough_tests",
    "experimental tests": "experimental_tests",
    "paranoia level": "paranoia_level",
    "report verbosity": "report_verbosity",
    "safe checks": "safe_checks",
    "optimize the test": "optimize_test",
    "credentialed checks": "credentialed_checks",
    "max hosts": "max_hosts",
    "max checks": "max_checks",
    "recv timeout": "recv_timeout",
    "scan start date": "scan_start_date",
    "scan duration": "scan_duration",
}

# Policy ServerPreferences name -> metadata key
_SERVER_PREFERENCES: dict[str, str] = {
    "port_range": "port_range",
    "max_hosts": "max_hosts",
    "max_checks": "max_checks",
    "safe_checks": "safe_checks",
    "checks_read_timeout": "recv_timeout",
    "scan_description": "scan_description",
}

_SCAN_INFO_LINE_RE = re.compile(r"^\s*([^:]+?)\s+:\s+(.*?)\s*$")
_SCAN_START_RE = re.compile(
    r"^(\d{4})/(\d{1,2})/(\d{1,2})\s+(\d{1,2}):(\d{2})(?::(\d{2}))?(?:\s+(\S+))?"
)
_NUMERIC_ZONE_RE = re.compile(r"^(?:UTC|GMT)?([+-])(\d{1,2}):?(\d{2})?$", re.IGNORECASE)

# Zone abbreviations scanners print after the scan start date
_ZONE_OFFSETS: dict[str, timedelta] = {
    "UTC": timedelta(0),
    "GMT": timedelta(0),
    "Z": timedelta(0),
    "EST": timedelta(hours=-5),
    "EDT": timedelta(hours=-4),
    "CST": timedelta(hours=-6),
    "CDT": timedelta(hours=-5),
    "MST": timedelta(hours=-7),
    "MDT": timedelta(hours=-6),
    "PST": timedelta(hours=-8),
    "PDT": timedelta(hours=-7),
    "AKST": timedelta(hours=-9),
    "AKDT": timedelta(hours=-8),
    "HST": timedelta(hours=-10),
    "WET": timedelta(0),
    "WEST": timedelta(hours=1),
    "BST": timedelta(hours=1),
    "CET": timedelta(hours=1),
    "CEST": timedelta(hours=2),
    "EET": timedelta(hours=2),
    "EEST": timedelta(hours=3),
    "MSK": timedelta(hours=3),
    "JST": timedelta(hours=9),
    "KST": timedelta(hours=9),
    "AEST": timedelta(hours=10),
    "AEDT": timedelta(hours=11),
    "NZST": timedelta(hours=12),
    "NZDT": timedelta(hours=13),
}
_DURATION_RE = re.compile(r"^(\d+)\s*sec", re.IGNORECASE)
_INT_RE = re.compile(r"^-?\d+$")


def _text(elem: Element, tag: str) -> str | None:
    value = elem.findtext(tag)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _coerce_scalar(value: str) -> MetadataValue:
    lowered = value.lower()
    if lowered in ("yes", "true"):
        return True
    if lowered in ("no", "false"):
        return False
    if _INT_RE.match(value):
        return int(value)
    return value


def parse_zone(name: str | None) -> timezone | None:
    """Resolve a zone suffix such as ``EST`` or ``+0200``; None if unknown.

    A missing suffix means UTC.
    """
    if not name:
        return timezone.utc
    offset = _ZONE_OFFSETS.get(name.upper())
    if offset is not None:
        return timezone(offset)
    match = _NUMERIC_ZONE_RE.match(name)
    if match is None:
        return None
    sign, hours, minutes = match.groups()
    offset = timedelta(hours=int(hours), minutes=int(minutes or 0))
    if offset >= timedelta(hours=24):
        return None
    return timezone(-offset if sign == "-" else offset)


def parse_scan_start(value: str | None) -> datetime | None:
    """Parse plugin 19506's ``2024/1/2 10:00 UTC`` style timestamp.

    The local time is converted to UTC using the zone suffix. An unknown
    suffix is read as UTC.
    """
    if not value:
        return None
    match = _SCAN_START_RE.match(value.strip())
    if not match:
        return None
    year, month, day, hour, minute, second, zone = match.groups()
    try:
        local = datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second or 0),
            tzinfo=parse_zone(zone) or timezone.utc,
        )
    except ValueError:
        return None
    return local.astimezone(timezone.utc)


def parse_host_time(value: str | None) -> datetime | None:
    """Parse HOST_START / HOST_END (``Tue Jan  2 10:00:00 2024``) as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.strptime(" ".join(value.split()), "%a %b %d %H:%M:%S %Y")
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)


def _parse_epoch(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value.strip()), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


class NessusParser:
    """Single-pass, event-based reader for one .nessus document."""

    def __init__(
        self,
        source: str | PathLike[str] | BinaryIO,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._source = source
        self._cancel_event = cancel_event
        self._consumed = False
        self._scan_info_seen = False
        self.metadata = ScanMetadata()
        self.warnings: list[str] = []
        self.host_count = 0
        self.finding_count = 0

    # ── Public API ───────────────────────────────────────────────────────────

    def iter_hosts(self) -> Iterator[RawHost]:
        """Yield raw host blocks lazily, in document order.

        Raises:
            MalformedScanFile: the XML is not well-formed, the root element is
                not ``NessusClientData_v2`` or there is no ``Report`` element.
            ScanIOError: the source could not be opened or read.
            ImportCancelled: the cancel event was set between two hosts.
        """
        if self._consumed:
            raise RuntimeError("NessusParser.iter_hosts() can only be consumed once")
        self._consumed = True

        try:
            yield from self._iter_hosts()
        except ParseError as exc:
            raise MalformedScanFile(f"Invalid XML: {exc}") from exc
        except OSError as exc:
            raise ScanIOError(f"Cannot read scan file: {exc}") from exc

    # ── Event loop ───────────────────────────────────────────────────────────

    def _iter_hosts(self) -> Iterator[RawHost]:
        # Open elements, outermost first; the parent of a closing element is stack[-1]
        stack: list[Element] = []
        seen_report = False
        host_props: dict[str, str] = {}
        findings: list[RawFinding] = []
        host_name = ""

        for event, elem in iterparse(self._source, events=("start", "end")):
            tag = elem.tag

            if event == "start":
                if not stack and tag != ROOT_TAG:
                    raise MalformedScanFile(
                        f"Unexpected root element <{tag}>, expected <{ROOT_TAG}>"
                    )
                stack.append(elem)
                if tag == "Report":
                    seen_report = True
                    self.metadata.report_name = (elem.get("name") or "").strip() or None
                elif tag == "ReportHost":
                    host_name = (elem.get("name") or "").strip()
                    host_props = {}
                    findings = []
                continue

            stack.pop()

            if tag == "ReportItem":
                finding = self._parse_item(elem, host_name)
                if finding is not None:
                    findings.append(finding)
                elem.clear()
            elif tag == "HostProperties":
                host_props = self._parse_host_properties(elem)
                elem.clear()
            elif tag == "ReportHost":
                self._check_cancelled()
                host = self._build_host(host_name, host_props, findings)
                self._release(stack, elem)
                self.host_count += 1
                self.finding_count += len(host.findings)
                yield host
            elif tag == "Policy":
                self._parse_policy(elem)
                self._release(stack, elem)

        if not seen_report:
            raise MalformedScanFile("Missing <Report> element")

        logger.debug(
            "Parsed scan file",
            hosts=self.host_count,
            findings=self.finding_count,
            warnings=len(self.warnings),
        )

    @staticmethod
    def _release(stack: list[Element], elem: Element) -> None:
        """Drop a fully processed subtree so the tree never grows with the file."""
        elem.clear()
        if stack:
            stack[-1].remove(elem)

    def _check_cancelled(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise ImportCancelled("Import cancelled while parsing")

    def _warn(self, message: str) -> None:
        self.warnings.append(message)

    # ── Policy ───────────────────────────────────────────────────────────────

    def _parse_policy(self, elem: Element) -> None:
        self.metadata.policy_name = _text(elem, "policyName")
        for pref in elem.iterfind("Preferences/ServerPreferences/preference"):
            name = _text(pref, "name")
            value = _text(pref, "value")
            key = _SERVER_PREFERENCES.get(name or "")
            if key and value is not None:
                self.metadata.values.setdefault(key, _coerce_scalar(value))

    # ── Hosts ────────────────────────────────────────────────────────────────

    @staticmethod
    def _parse_host_properties(elem: Element) -> dict[str, str]:
        props: dict[str, str] = {}
        for tag in elem.iterfind("tag"):
            name = tag.get("name")
            value = (tag.text or "").strip()
            if name and value:
                props[name] = value
        return props

    @staticmethod
    def _build_host(name: str, props: dict[str, str], findings: list[RawFinding]) -> RawHost:
        start = _parse_epoch(props.get("HOST_START_TIMESTAMP")) or parse_host_time(
            props.get("HOST_START")
        )
        end = _parse_epoch(props.get("HOST_END_TIMESTAMP")) or parse_host_time(
            props.get("HOST_END")
        )
        return RawHost(
            name=name,
            ip=props.get("host-ip"),
            hostname=(
                props.get("host-fqdn")
                or props.get("hostname")
                or props.get("netbios-name")
            ),
            mac=props.get("mac-address"),
            os=props.get("operating-system"),
            start_time=start,
            end_time=end,
            findings=findings,
        )

    # ── Findings ─────────────────────────────────────────────────────────────

    def _parse_item(self, elem: Element, host_name: str) -> RawFinding | None:
        attrs = elem.attrib
        raw_plugin_id = attrs.get("pluginID")
        try:
            plugin_id = int(raw_plugin_id)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            self._warn(
                f"Host {host_name!r}: skipped finding with invalid plugin id {raw_plugin_id!r}"
            )
            return None

        finding = RawFinding(
            plugin_id=plugin_id,
            plugin_name=(attrs.get("pluginName") or "").strip(),
            plugin_family=(attrs.get("pluginFamily") or "").strip(),
            severity=self._parse_severity(attrs.get("severity"), plugin_id, host_name),
            port=self._parse_port(attrs.get("port"), plugin_id, host_name),
            protocol=(attrs.get("protocol") or "").strip().lower() or None,
            service=(attrs.get("svc_name") or "").strip() or None,
            description=_text(elem, "description"),
            solution=_text(elem, "solution"),
            synopsis=_text(elem, "synopsis"),
            plugin_output=_text(elem, "plugin_output"),
            cves=self._parse_cves(elem),
            cvss_score=self._parse_cvss(elem, plugin_id, host_name),
        )

        if plugin_id == SCAN_INFO_PLUGIN_ID and not self._scan_info_seen:
            self._scan_info_seen = True
            self._parse_scan_info(finding.plugin_output or "")

        return finding

    def _parse_severity(self, raw: str | None, plugin_id: int, host_name: str) -> int:
        try:
            severity = int((raw or "").strip())
        except ValueError:
            severity = -1
        if 0 <= severity <= 4:
            return severity
        self._warn(
            f"Host {host_name!r} plugin {plugin_id}: invalid severity {raw!r}, using Info"
        )
        return 0

    def _parse_port(self, raw: str | None, plugin_id: int, host_name: str) -> int:
        if raw is None or not raw.strip():
            return 0
        try:
            port = int(raw.strip())
        except ValueError:
            port = -1
        if 0 <= port <= 65535:
            return port
        self._warn(f"Host {host_name!r} plugin {plugin_id}: invalid port {raw!r}, using 0")
        return 0

    @staticmethod
    def _parse_cves(elem: Element) -> list[str]:
        seen: dict[str, None] = {}
        for cve in elem.iterfind("cve"):
            value = (cve.text or "").strip().upper()
            if value:
                seen.setdefault(value, None)
        return list(seen)

    def _parse_cvss(self, elem: Element, plugin_id: int, host_name: str) -> float | None:
        # CVSSv3 first; a missing or malformed v3 score falls back to v2
        for tag in ("cvss3_base_score", "cvss_base_score"):
            raw = _text(elem, tag)
            if raw is None:
                continue
            try:
                score = float(raw)
            except ValueError:
                score = -1.0
            if 0.0 <= score <= 10.0:
                return score
            self._warn(
                f"Host {host_name!r} plugin {plugin_id}: dropped invalid {tag} {raw!r}"
            )
        return None

    # ── Plugin 19506 ─────────────────────────────────────────────────────────

    def _parse_scan_info(self, output: str) -> None:
        values = self.metadata.values
        for line in output.splitlines():
            match = _SCAN_INFO_LINE_RE.match(line)
            if not match:
                continue
            label, value = match.group(1).strip().lower(), match.group(2)
            if not value:
                continue
            if "warning" in label:
                self.metadata.warnings.append(value)
                continue
            key = _SCAN_INFO_LABELS.get(label)
            if key is None:
                continue
            if key == "scan_duration":
                duration = _DURATION_RE.match(value)
                values[key] = int(duration.group(1)) if duration else value
            elif key == "scan_start_date":
                values[key] = value
                self.metadata.scan_start = parse_scan_start(value)
                match = _SCAN_START_RE.match(value)
                if match and parse_zone(match.group(7)) is None:
                    self._warn(
                        f"Scan start date {value!r}: unknown time zone "
                        f"{match.group(7)!r}, assuming UTC"
                    )
            else:
                values[key] = _coerce_scalar(value)
