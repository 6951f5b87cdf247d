"""PlanCatalog CLI.

Commands:
- init: Initialize database schema
- sync-catalog: Synchronize the catalog with an .xlsx workbook
- bom: Show the bill of materials of a floorplan
- refresh-bom: Refresh a floorplan's BOM snapshots from the catalog
- sync-runs: Show recent catalog sync runs
- web serve: Run the API server
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from plancatalog.bom import BomError, BomService
from plancatalog.catalog_sync import CatalogSyncService, SyncPhase
from plancatalog.config import get_config
from plancatalog.core.logging import configure_logging
from plancatalog.db.connection import close_db, get_session, init_db

app = typer.Typer(
    name="plancatalog",
    help="PlanCatalog - spreadsheet catalog sync and floorplan BOM",
    no_args_is_help=True,
)

web_cli = typer.Typer(help="Web API")
app.add_typer(web_cli, name="web")

console = Console()

STATUS_STYLES = {
    "SUCCESS": "green",
    "PARTIAL_SUCCESS": "yellow",
    "FAILED": "red",
    "CANCELLED": "magenta",
}


@app.callback()
def _setup() -> None:
    try:
        config = get_config()
    except KeyError as e:
        console.print(f"[bold red]✗[/bold red] {e.args[0]}")
        raise typer.Exit(code=1)
    configure_logging(config)


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")
    if drop:
        console.print("[yellow]Dropping existing tables...[/yellow]")

    async def _init():
        try:
            await init_db(drop=drop)
        finally:
            await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command(name="sync-catalog")
def sync_catalog_cmd(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Catalog workbook (.xlsx)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print every log line"),
):
    """Synchronize the catalog with an .xlsx workbook (the workbook wins)."""
    console.print(f"[bold]Syncing catalog from:[/bold] {file}")

    def on_progress(message: str, phase: SyncPhase, progress: float | None) -> None:
        if verbose or progress is not None or not message.startswith("  "):
            console.print(f"  [dim]{phase.value:>10}[/dim] {message.strip()}")

    async def _sync():
        try:
            return await CatalogSyncService().sync_catalog(file, progress=on_progress)
        finally:
            await close_db()

    result = asyncio.run(_sync())
    phases = result.phases

    table = Table(title="Catalog Sync")
    table.add_column("Phase", style="cyan")
    table.add_column("Added", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Unchanged", justify="right")
    table.add_column("Deactivated", justify="right")
    table.add_column("Total", justify="right")
    table.add_row(
        "Categories",
        str(phases.categories.added),
        f"{phases.categories.activated} activated",
        "-",
        str(phases.categories.deactivated),
        str(phases.categories.total),
    )
    table.add_row(
        "Items",
        str(phases.items.added),
        str(phases.items.updated),
        str(phases.items.unchanged),
        str(phases.items.deactivated),
        str(phases.items.total),
    )
    table.add_row(
        "Variants",
        str(phases.variants.added),
        str(phases.variants.updated),
        str(phases.variants.unchanged),
        str(phases.variants.deactivated),
        str(phases.variants.total),
    )
    console.print(table)
    console.print(
        f"Images: {phases.variants.images_extracted} | Add-ons: {phases.addons.linked} linked, "
        f"{phases.addons.skipped} skipped, {phases.addons.not_found} not found "
        f"of {phases.addons.total}"
    )

    if result.errors:
        console.print(f"\n[yellow]⚠ {len(result.errors)} errors[/yellow]")
        for err in result.errors[:20]:
            console.print(f"  row {err.row}: {err.message}", style="dim")

    style = STATUS_STYLES.get(result.status.value, "white")
    console.print(
        f"\n[bold {style}]{result.status.value}[/bold {style}] in {result.duration_seconds:.1f}s"
    )
    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def bom(
    floorplan_id: UUID = typer.Argument(..., help="Floorplan ID"),
):
    """Show the bill of materials of a floorplan."""

    async def _bom():
        try:
            async with get_session() as session:
                return await BomService(session).get_bom_for_floorplan(floorplan_id)
        finally:
            await close_db()

    try:
        floorplan_bom = asyncio.run(_bom())
    except BomError as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        raise typer.Exit(code=1)

    if not floorplan_bom.groups:
        console.print("[yellow]No BOM entries for this floorplan[/yellow]")
        return

    table = Table(title=f"BOM {floorplan_id}")
    table.add_column("Item", style="cyan")
    table.add_column("Model")
    table.add_column("Unit price", justify="right")
    table.add_column("Qty", justify="right")
    table.add_column("Total", justify="right", style="green")
    for group in floorplan_bom.groups:
        main = group.main_entry
        table.add_row(
            main.name_snapshot,
            main.model_number_snapshot or "",
            f"{main.price_snapshot:.2f}",
            str(group.quantity),
            f"{group.total_price:.2f}",
        )
        for child in group.children:
            table.add_row(
                f"  + {child.name_snapshot}",
                child.model_number_snapshot or "",
                f"{child.price_snapshot:.2f}",
                "",
                "",
                style="dim",
            )
    console.print(table)
    console.print(f"[bold]Floorplan total:[/bold] {floorplan_bom.total_price:.2f}")


@app.command(name="refresh-bom")
def refresh_bom_cmd(
    floorplan_id: UUID = typer.Argument(..., help="Floorplan ID"),
):
    """Refresh BOM snapshots from current catalog prices."""

    async def _refresh():
        try:
            async with get_session() as session:
                return await BomService(session).update_from_catalog(floorplan_id)
        finally:
            await close_db()

    try:
        report = asyncio.run(_refresh())
    except BomError as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        raise typer.Exit(code=1)

    for change in report.updated:
        console.print(
            f"  [green]✓[/green] {change.name}: {change.old_price:.2f} → {change.new_price:.2f}"
        )
    for invalid in report.invalid:
        console.print(f"  [yellow]⚠[/yellow] {invalid.name}: {invalid.reason}")

    console.print(
        f"\n[bold]Total:[/bold] {report.total_before:.2f} → {report.total_after:.2f} "
        f"({len(report.updated)} updated, {len(report.invalid)} invalid)"
    )


@app.command(name="sync-runs")
def sync_runs_cmd(
    last_n: int = typer.Option(5, "--last", "-n", help="Show last N sync runs"),
):
    """Show recent catalog sync runs."""

    async def _runs():
        try:
            return await CatalogSyncService().recent_runs(limit=last_n)
        finally:
            await close_db()

    runs = asyncio.run(_runs())
    if not runs:
        console.print("[yellow]No catalog sync runs found[/yellow]")
        return

    table = Table(title=f"Last {last_n} Catalog Sync Runs")
    table.add_column("When")
    table.add_column("File", style="cyan")
    table.add_column("Status")
    table.add_column("Errors", justify="right")
    table.add_column("Duration", justify="right")
    for run in runs:
        style = STATUS_STYLES.get(run["status"], "white")
        duration = run["duration_seconds"]
        table.add_row(
            run["run_timestamp"][:19],
            run["source_file"],
            f"[{style}]{run['status']}[/{style}]",
            str(run["error_count"]),
            f"{duration:.1f}s" if duration is not None else "-",
        )
    console.print(table)


@web_cli.command("serve")
def web_serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind"),
    port: int = typer.Option(8001, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload (dev only)"),
):
    """Run the FastAPI application."""
    import uvicorn

    typer.echo(f"Starting PlanCatalog API on http://{host}:{port}")
    uvicorn.run("plancatalog.web.app:app", host=host, port=port, reload=reload, workers=1)


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
