"""ScanDelta CLI entry point: `scandelta` command group."""

from __future__ import annotations

import click

from scandelta.cli.commands.analysis import compare_cmd, trends_cmd
from scandelta.cli.commands.db import db_cmd
from scandelta.cli.commands.reports import reports_cmd
from scandelta.cli.commands.scan_import import import_cmd


@click.group()
@click.version_option(package_name="scandelta")
@click.option(
    "--database-url",
    default=None,
    envvar="SCANDELTA_DATABASE_URL",
    help="Async SQLAlchemy URL of the report store (defaults to settings)",
)
@click.pass_context
def cli(ctx: click.Context, database_url: str | None) -> None:
    """ScanDelta: import Nessus scans, compare them, follow the trend.

    \b
    Quick start:
      scandelta import january.nessus february.nessus
      scandelta reports list
      scandelta compare 1 2
      scandelta trends

    API docs (after `scandelta serve`): http://127.0.0.1:8000/docs
    """
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url


# Register sub-commands
cli.add_command(import_cmd)
cli.add_command(reports_cmd)
cli.add_command(compare_cmd)
cli.add_command(trends_cmd)
cli.add_command(db_cmd)


@cli.command("serve")
@click.option("--host", default=None, help="Bind host (defaults to settings)")
@click.option("--port", default=None, type=int, help="Bind port (defaults to settings)")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload (dev mode)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the ScanDelta API server."""
    import os

    import uvicorn

    from scandelta.core.config import get_settings

    # The server process reads its settings from the environment
    if ctx.obj.get("database_url"):
        os.environ["SCANDELTA_DATABASE_URL"] = ctx.obj["database_url"]
        get_settings.cache_clear()

    settings = get_settings()
    uvicorn.run(
        "scandelta.api.app:app",
        host=host or settings.app_host,
        port=port or settings.app_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    cli()
