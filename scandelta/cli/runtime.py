"""Run a service operation from a synchronous click command."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import click

from scandelta.cli.output import console
from scandelta.core.config import Settings, get_settings
from scandelta.core.database import build_engine, init_db
from scandelta.core.errors import NotFoundError, ScanDeltaError
from scandelta.service import ScanService
from scandelta.store import SqlReportStore

T = TypeVar("T")


def cli_settings(ctx: click.Context) -> Settings:
    settings = get_settings()
    database_url = (ctx.obj or {}).get("database_url")
    if database_url:
        settings = settings.model_copy(update={"database_url": database_url})
    return settings


def run_service(ctx: click.Context, operation: Callable[[ScanService], Awaitable[T]]) -> T:
    """Open the store, run ``operation`` against a fresh service, then dispose.

    Domain errors are printed and turned into exit code 1.
    """
    settings = cli_settings(ctx)

    async def _run() -> T:
        engine = build_engine(settings.database_url, echo=settings.database_echo)
        try:
            await init_db(engine)
            service = ScanService(SqlReportStore(engine), settings=settings)
            return await operation(service)
        finally:
            await engine.dispose()

    try:
        return asyncio.run(_run())
    except NotFoundError as e:
        console.print(f"[yellow]{e}.[/yellow]")
        raise SystemExit(1)
    except ScanDeltaError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)
