"""CLI commands for database housekeeping."""

from __future__ import annotations

import click

from scandelta.cli.output import console, stats_view
from scandelta.cli.runtime import cli_settings, run_service


@click.group("db")
def db_cmd() -> None:
    """Database statistics and maintenance."""


@db_cmd.command("init")
@click.pass_context
def db_init(ctx: click.Context) -> None:
    """Create the database tables if they do not exist."""

    async def _noop(service) -> None:
        return None

    # Opening the store creates missing tables
    run_service(ctx, _noop)
    console.print(f"[green]✓[/green] Database ready at {cli_settings(ctx).database_url}")


@db_cmd.command("stats")
@click.pass_context
def db_stats(ctx: click.Context) -> None:
    """Show row counts and storage size."""
    stats_view(run_service(ctx, lambda s: s.get_database_stats()))


@db_cmd.command("purge")
@click.option("--yes", is_flag=True, default=False, help="Skip the confirmation prompt")
@click.pass_context
def db_purge(ctx: click.Context, yes: bool) -> None:
    """Delete every report, host and finding."""
    if not yes:
        click.confirm("Delete ALL imported data?", abort=True)
    run_service(ctx, lambda s: s.delete_all_data())
    console.print("[green]✓[/green] All data deleted.")


@db_cmd.command("optimize")
@click.pass_context
def db_optimize(ctx: click.Context) -> None:
    """Reclaim space and refresh query planner statistics."""
    run_service(ctx, lambda s: s.optimize_storage())
    console.print("[green]✓[/green] Storage optimized.")
