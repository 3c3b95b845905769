"""Rich output helpers: tables, detail views, import progress."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from scandelta.core.severity import severity_label
from scandelta.schemas.admin import DatabaseStats
from scandelta.schemas.analysis import Delta, DeltaEntry, PluginDelta, SeverityCounts, TrendRow
from scandelta.schemas.report import ReportDetails, ReportItemOut, ReportOut

console = Console()

_SEVERITY_STYLES = {
    4: "bold red",
    3: "red",
    2: "yellow",
    1: "green",
    0: "dim",
}


def severity_text(severity: int) -> Text:
    return Text(severity_label(severity), style=_SEVERITY_STYLES.get(severity, "white"))


def fmt_date(value: datetime | None) -> str:
    if value is None:
        return "—"
    return value.strftime("%Y-%m-%d %H:%M")


def fmt_size(size: int | None) -> str:
    if size is None:
        return "unknown"
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def _table(title: str) -> Table:
    return Table(
        title=title,
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
        show_lines=False,
    )


def reports_table(reports: list[ReportOut]) -> Table:
    table = _table(f"Reports ({len(reports)})")
    table.add_column("ID", justify="right", style="bold")
    table.add_column("Scan name")
    table.add_column("File", style="dim")
    table.add_column("Scan date", no_wrap=True)
    table.add_column("Hosts", justify="right")
    table.add_column("Findings", justify="right")
    table.add_column("Imported", style="dim", no_wrap=True)

    for r in reports:
        table.add_row(
            str(r.id),
            r.scan_name,
            r.filename,
            fmt_date(r.scan_date),
            str(r.total_hosts),
            str(r.total_vulnerabilities),
            fmt_date(r.imported_at),
        )
    return table


def report_detail(details: ReportDetails) -> None:
    """Print a report header followed by its hosts."""
    r = details.report
    console.rule(f"[bold cyan]Report {r.id} — {r.scan_name}")

    fields = [
        ("File", r.filename),
        ("Scan date", fmt_date(r.scan_date)),
        ("Imported", fmt_date(r.imported_at)),
        ("Hosts", str(r.total_hosts)),
        ("Findings", str(r.total_vulnerabilities)),
    ]
    for label, value in fields:
        console.print(f"  [dim]{label:<12}[/dim] {value}")

    if not details.hosts:
        console.print("\n[dim]No hosts in this report.[/dim]")
        return

    console.print()
    table = _table("Hosts")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("IP", style="bold", no_wrap=True)
    table.add_column("Hostname")
    table.add_column("OS")
    for bucket, style in (("Crit", "bold red"), ("High", "red"), ("Med", "yellow"), ("Low", "green"), ("Info", "dim")):
        table.add_column(bucket, justify="right", style=style)
    table.add_column("Total", justify="right", style="bold")

    for h in details.hosts:
        table.add_row(
            str(h.id),
            h.ip_address,
            h.hostname or "—",
            h.os or "—",
            str(h.critical),
            str(h.high),
            str(h.medium),
            str(h.low),
            str(h.info),
            str(h.total),
        )
    console.print(table)


def items_table(items: list[ReportItemOut], limit: int | None = None) -> Table:
    shown = items[:limit] if limit else items
    table = _table(f"Findings ({len(shown)} of {len(items)})")
    table.add_column("Severity", no_wrap=True)
    table.add_column("Plugin", justify="right")
    table.add_column("Name")
    table.add_column("Host", no_wrap=True)
    table.add_column("Port", justify="right")
    table.add_column("CVSS", justify="right")
    table.add_column("CVEs", style="dim")

    for item in shown:
        cves = ", ".join(item.cves[:3])
        if len(item.cves) > 3:
            cves += f" +{len(item.cves) - 3}"
        port = f"{item.port}/{item.protocol}" if item.protocol else str(item.port)
        table.add_row(
            severity_text(item.severity),
            str(item.plugin_id),
            item.plugin_name,
            item.hostname or item.ip_address,
            port,
            f"{item.cvss_score:.1f}" if item.cvss_score is not None else "—",
            cves or "—",
        )
    return table


def metadata_view(report_id: int, metadata: dict[str, Any] | None) -> None:
    console.rule(f"[bold cyan]Scan metadata — report {report_id}")
    if not metadata:
        console.print("[dim]No scan metadata recorded.[/dim]")
        return
    for key in sorted(metadata):
        value = metadata[key]
        if isinstance(value, list):
            value = "; ".join(str(v) for v in value)
        console.print(f"  [dim]{key:<24}[/dim] {value}")


def _counts_row(label: str, counts: SeverityCounts, style: str) -> list[Any]:
    return [
        Text(label, style=style),
        str(counts.critical),
        str(counts.high),
        str(counts.medium),
        str(counts.low),
        str(counts.info),
        str(counts.total),
    ]


def delta_summary(delta: Delta) -> None:
    a, b = delta.report_a, delta.report_b
    console.rule(f"[bold cyan]{a.scan_name} ({a.id}) → {b.scan_name} ({b.id})")
    console.print(
        f"  [dim]Common hosts[/dim] {len(delta.common_hosts)}   "
        f"[dim]Only in A[/dim] {len(delta.hosts_only_in_a)}   "
        f"[dim]Only in B[/dim] {len(delta.hosts_only_in_b)}"
    )

    table = _table("Findings on common hosts")
    table.add_column("")
    for bucket in ("Crit", "High", "Med", "Low", "Info", "Total"):
        table.add_column(bucket, justify="right")
    table.add_row(*_counts_row("New", delta.new_counts, "red"))
    table.add_row(*_counts_row("Resolved", delta.resolved_counts, "green"))
    table.add_row(*_counts_row("Persistent", delta.persistent_counts, "yellow"))
    console.print(table)

    if delta.unmeasured_in_a or delta.unmeasured_in_b:
        console.print(
            f"[dim]{len(delta.unmeasured_in_b)} finding(s) on hosts missing from B and "
            f"{len(delta.unmeasured_in_a)} on hosts new in B are not counted above.[/dim]"
        )


def delta_entries_table(title: str, entries: list[DeltaEntry], limit: int | None = None) -> Table:
    shown = entries[:limit] if limit else entries
    table = _table(f"{title} ({len(shown)} of {len(entries)})")
    table.add_column("Severity", no_wrap=True)
    table.add_column("Plugin", justify="right")
    table.add_column("Name")
    table.add_column("IP", no_wrap=True)
    table.add_column("Port", justify="right")
    table.add_column("Changed", justify="center")

    for e in shown:
        table.add_row(
            severity_text(e.severity),
            str(e.plugin_id),
            e.plugin_name,
            e.ip_address,
            f"{e.port}/{e.protocol}" if e.protocol else str(e.port),
            Text("✓", style="yellow") if e.severity_changed else "",
        )
    return table


def plugin_delta_table(delta: PluginDelta) -> Table:
    table = _table("Plugins across reports")
    table.add_column("")
    for bucket in ("Crit", "High", "Med", "Low", "Info", "Total"):
        table.add_column(bucket, justify="right")
    table.add_row(*_counts_row("Only in A", delta.only_in_a_counts, "green"))
    table.add_row(*_counts_row("Only in B", delta.only_in_b_counts, "red"))
    table.add_row(*_counts_row("Common", delta.common_counts, "yellow"))
    return table


def trends_table(rows: list[TrendRow]) -> Table:
    table = _table("Severity trend")
    table.add_column("Scan date", no_wrap=True)
    table.add_column("Report")
    table.add_column("ID", justify="right", style="dim")
    for bucket, style in (("Crit", "bold red"), ("High", "red"), ("Med", "yellow"), ("Low", "green"), ("Info", "dim")):
        table.add_column(bucket, justify="right", style=style)
    table.add_column("Total", justify="right", style="bold")

    for row in rows:
        table.add_row(
            fmt_date(row.scan_date),
            row.label,
            str(row.report_id),
            str(row.critical),
            str(row.high),
            str(row.medium),
            str(row.low),
            str(row.info),
            str(row.total),
        )
    return table


def stats_view(stats: DatabaseStats) -> None:
    console.rule("[bold cyan]Database")
    console.print(f"  [dim]{'Reports':<16}[/dim] {stats.total_reports}")
    console.print(f"  [dim]{'Hosts':<16}[/dim] {stats.total_hosts}")
    console.print(f"  [dim]{'Vulnerabilities':<16}[/dim] {stats.total_vulnerabilities}")
    console.print(f"  [dim]{'Storage size':<16}[/dim] {fmt_size(stats.storage_size)}")


def import_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
