"""CLI commands for comparing reports and showing trends."""

from __future__ import annotations

import click

from scandelta.cli.output import (
    console,
    delta_entries_table,
    delta_summary,
    plugin_delta_table,
    trends_table,
)
from scandelta.cli.runtime import run_service


@click.command("compare")
@click.argument("report_a", type=int)
@click.argument("report_b", type=int)
@click.option(
    "--show",
    "show",
    multiple=True,
    type=click.Choice(["new", "resolved", "persistent"]),
    default=("new", "resolved"),
    show_default=True,
    help="Finding lists to print",
)
@click.option("--limit", default=25, show_default=True, help="Max rows per list (0 = all)")
@click.option("--plugins", is_flag=True, default=False, help="Also compare plugin ids report-wide")
@click.pass_context
def compare_cmd(
    ctx: click.Context,
    report_a: int,
    report_b: int,
    show: tuple[str, ...],
    limit: int,
    plugins: bool,
) -> None:
    """Compare REPORT_A (older) with REPORT_B (newer).

    Example:

        scandelta compare 1 2 --show new --show persistent
    """
    delta = run_service(ctx, lambda s: s.compare_reports(report_a, report_b))
    delta_summary(delta)
    for name in show:
        entries = getattr(delta, name)
        if entries:
            console.print(delta_entries_table(name.capitalize(), entries, limit=limit or None))

    if plugins:
        plugin_delta = run_service(ctx, lambda s: s.compare_plugins(report_a, report_b))
        console.print(plugin_delta_table(plugin_delta))


@click.command("trends")
@click.argument("report_ids", nargs=-1, type=int)
@click.pass_context
def trends_cmd(ctx: click.Context, report_ids: tuple[int, ...]) -> None:
    """Severity counts per report, ordered by scan date.

    With no REPORT_IDS every report is included.
    """

    async def _trends(service):
        ids = report_ids or [r.id for r in await service.list_reports()]
        return await service.compute_trends(ids)

    rows = run_service(ctx, _trends)
    if not rows:
        console.print("[dim]No reports imported yet.[/dim]")
        return
    console.print(trends_table(rows))
