"""Build small .nessus documents for tests."""

from __future__ import annotations

from xml.sax.saxutils import escape, quoteattr

SCAN_INFO_OUTPUT = """Information about this scan :

Nessus version : 10.6.1
Nessus build : 20003
Plugin feed version : 202401020304
Scanner edition used : Nessus
Scanner OS : LINUX
Scan type : Normal
Scan name : Weekly internal
Scan policy used : Basic Network Scan
Scanner IP : 10.0.0.250
Port range : default
Ping RTT : 12.345 ms
Thorough tests : no
Experimental tests : no
Paranoia level : 1
Report verbosity : 1
Safe checks : yes
Optimize the test : yes
Credentialed checks : no
Max hosts : 30
Max checks : 4
Recv timeout : 5
Scan Start Date : 2024/1/2 10:00 UTC
Scan duration : 1234 sec
"""


def item(
    plugin_id: int | str,
    severity: int | str = 0,
    port: int | str = 0,
    *,
    protocol: str = "tcp",
    name: str | None = None,
    family: str = "General",
    svc_name: str = "general",
    cves: tuple[str, ...] = (),
    cvss: str | None = None,
    cvss3: str | None = None,
    output: str | None = None,
    description: str | None = None,
    solution: str | None = None,
    synopsis: str | None = None,
) -> str:
    children = []
    for tag, value in (
        ("description", description),
        ("solution", solution),
        ("synopsis", synopsis),
        ("plugin_output", output),
        ("cvss_base_score", cvss),
        ("cvss3_base_score", cvss3),
    ):
        if value is not None:
            children.append(f"<{tag}>{escape(value)}</{tag}>")
    children.extend(f"<cve>{escape(c)}</cve>" for c in cves)
    return (
        f"<ReportItem port={quoteattr(str(port))} svc_name={quoteattr(svc_name)} "
        f"protocol={quoteattr(protocol)} severity={quoteattr(str(severity))} "
        f"pluginID={quoteattr(str(plugin_id))} "
        f"pluginName={quoteattr(name or f'Plugin {plugin_id}')} "
        f"pluginFamily={quoteattr(family)}>"
        + "".join(children)
        + "</ReportItem>"
    )


def host(name: str, *items: str, **properties: str) -> str:
    """A ReportHost block; ``properties`` use underscores for dashes (host_ip)."""
    tags = "".join(
        f"<tag name={quoteattr(key.replace('_', '-') if key.islower() else key)}>"
        f"{escape(value)}</tag>"
        for key, value in properties.items()
    )
    return (
        f"<ReportHost name={quoteattr(name)}>"
        f"<HostProperties>{tags}</HostProperties>"
        + "".join(items)
        + "</ReportHost>"
    )


def scan(
    *hosts: str,
    report_name: str | None = "Weekly internal",
    policy_name: str | None = "Basic Network Scan",
    preferences: dict[str, str] | None = None,
) -> str:
    prefs = "".join(
        f"<preference><name>{escape(k)}</name><value>{escape(v)}</value></preference>"
        for k, v in (preferences or {}).items()
    )
    policy = ""
    if policy_name is not None:
        policy = (
            f"<Policy><policyName>{escape(policy_name)}</policyName>"
            f"<Preferences><ServerPreferences>{prefs}</ServerPreferences></Preferences>"
            "</Policy>"
        )
    report_attr = f" name={quoteattr(report_name)}" if report_name is not None else ""
    return (
        '<?xml version="1.0" ?>'
        "<NessusClientData_v2>"
        f"{policy}"
        f"<Report{report_attr}>"
        + "".join(hosts)
        + "</Report></NessusClientData_v2>"
    )
