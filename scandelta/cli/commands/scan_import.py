"""CLI command for importing .nessus files."""

from __future__ import annotations

import click

from scandelta.cli.output import console, import_progress
from scandelta.cli.runtime import run_service
from scandelta.service import ImportProgress, ImportResult, ScanService


@click.command("import")
@click.argument("files", nargs=-1, required=True, type=click.Path(dir_okay=False))
@click.option("--name", "filename", default=None, help="Display name (single file only)")
@click.option("--show-warnings", is_flag=True, default=False, help="List every import warning")
@click.pass_context
def import_cmd(
    ctx: click.Context, files: tuple[str, ...], filename: str | None, show_warnings: bool
) -> None:
    """Import one or more Nessus .nessus exports.

    Example:

        scandelta import january.nessus february.nessus
    """
    if filename and len(files) > 1:
        raise click.UsageError("--name can only be used with a single file")

    for path in files:
        with import_progress() as progress:
            task = progress.add_task(f"Importing {path}", total=None)

            def on_progress(p: ImportProgress) -> None:
                progress.update(
                    task,
                    description=(
                        f"Importing {path}: {p.hosts_processed} hosts, "
                        f"{p.findings_processed} findings"
                    ),
                )

            async def _import(service: ScanService) -> ImportResult:
                return await service.import_scan(path, filename=filename, progress=on_progress)

            result = run_service(ctx, _import)

        report = result.report
        console.print(
            f"[green]✓[/green] Report [bold]{report.id}[/bold] {report.scan_name!r}: "
            f"{report.total_hosts} hosts, {report.total_vulnerabilities} findings"
        )
        if result.partial is not None:
            console.print(f"  [yellow]{result.partial}[/yellow]")
            if show_warnings:
                for warning in result.warnings:
                    console.print(f"  [dim]- {warning}[/dim]")
