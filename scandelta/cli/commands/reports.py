"""CLI commands for browsing and deleting reports."""

from __future__ import annotations

import click

from scandelta.cli.output import (
    console,
    items_table,
    metadata_view,
    report_detail,
    reports_table,
)
from scandelta.cli.runtime import run_service


@click.group("reports")
def reports_cmd() -> None:
    """Browse imported reports."""


@reports_cmd.command("list")
@click.pass_context
def reports_list(ctx: click.Context) -> None:
    """List all reports, oldest scan first."""
    reports = run_service(ctx, lambda s: s.list_reports())
    if not reports:
        console.print("[dim]No reports imported yet.[/dim]")
        return
    console.print(reports_table(reports))


@reports_cmd.command("show")
@click.argument("report_id", type=int)
@click.pass_context
def reports_show(ctx: click.Context, report_id: int) -> None:
    """Show a report and its hosts."""
    report_detail(run_service(ctx, lambda s: s.get_report_details(report_id)))


@reports_cmd.command("items")
@click.argument("report_id", type=int)
@click.option("--limit", default=50, show_default=True, help="Max rows to display (0 = all)")
@click.option(
    "--min-severity",
    type=click.IntRange(0, 4),
    default=0,
    show_default=True,
    help="Hide findings below this severity (0 info … 4 critical)",
)
@click.pass_context
def reports_items(ctx: click.Context, report_id: int, limit: int, min_severity: int) -> None:
    """List a report's findings, most severe first."""
    items = run_service(ctx, lambda s: s.get_report_items(report_id))
    items = [i for i in items if i.severity >= min_severity]
    console.print(items_table(items, limit=limit or None))


@reports_cmd.command("metadata")
@click.argument("report_id", type=int)
@click.pass_context
def reports_metadata(ctx: click.Context, report_id: int) -> None:
    """Show scanner and policy details recorded for a report."""
    metadata_view(report_id, run_service(ctx, lambda s: s.get_scan_metadata(report_id)))


@reports_cmd.command("delete")
@click.argument("report_id", type=int)
@click.option("--yes", is_flag=True, default=False, help="Skip the confirmation prompt")
@click.pass_context
def reports_delete(ctx: click.Context, report_id: int, yes: bool) -> None:
    """Delete a report with its hosts and findings."""
    if not yes:
        click.confirm(f"Delete report {report_id}?", abort=True)
    run_service(ctx, lambda s: s.delete_report(report_id))
    console.print(f"[green]✓[/green] Report {report_id} deleted.")
