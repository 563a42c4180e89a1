"""
POPSTATS - CLI Commands
Command-line entry points for the population tracker.

Usage:
    popstats prepare                      # Create the population table
    popstats fetch population.csv         # Poll, store one sample, export CSV
    popstats export population.csv        # Regenerate the CSV only
    popstats import population.csv        # Bulk import a CSV
    popstats clear                        # Delete all samples
    popstats stats                        # Row count and newest sample
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

import click
from rich.console import Console
from rich.table import Table

from popstats import __version__
from popstats.core.config import MAX_BATCH_ROWS, get_settings
from popstats.core.database import DatabaseManager
from popstats.core.errors import StoreError
from popstats.services.population.population_store import PopulationStore

console = Console()
logger = logging.getLogger(__name__)


def _setup_logging(debug: bool) -> None:
    settings = get_settings()
    level = logging.DEBUG if debug or settings.DEBUG else settings.LOG_LEVEL
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def open_store(database_url: Optional[str]) -> AsyncGenerator[PopulationStore, None]:
    """Open the database handle for one command and release it afterwards."""
    async with DatabaseManager(url=database_url) as db:
        yield PopulationStore(db)


@click.group()
@click.version_option(__version__, prog_name="popstats")
@click.option("--database-url", envvar="DATABASE_URL", help="Override DATABASE_URL")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, database_url: Optional[str], debug: bool):
    """POPSTATS - TES3MP master server population tracker"""
    _setup_logging(debug)
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url


# ============== Schema ==============

@cli.command()
@click.pass_context
def prepare(ctx: click.Context):
    """Create the population table (no-op if it exists)"""
    console.print("[yellow]Preparing database...[/yellow]")

    async def run():
        async with open_store(ctx.obj["database_url"]) as store:
            await store.prepare()

    try:
        asyncio.run(run())
    except StoreError as e:
        console.print(f"[red]✗[/red] {e}")
        sys.exit(1)
    console.print("[green]✓[/green] Population table ready")


# ============== Collection ==============

@cli.command()
@click.argument("csv_path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--no-export", is_flag=True, help="Store the sample without regenerating the CSV")
@click.pass_context
def fetch(ctx: click.Context, csv_path: Path, no_export: bool):
    """Poll the master servers, store one sample and regenerate CSV_PATH"""
    from popstats.pipeline.fetch_population import run_fetch_cycle

    async def run():
        async with open_store(ctx.obj["database_url"]) as store:
            return await run_fetch_cycle(store, None if no_export else csv_path)

    report = asyncio.run(run())

    tbl = Table(title="Master Servers")
    tbl.add_column("URL", style="cyan")
    tbl.add_column("Servers", justify="right")
    tbl.add_column("Players", justify="right")
    tbl.add_column("Status")
    for source in report.merge.sources:
        status = "[green]ok[/green]" if source.success else f"[red]{source.error}[/red]"
        tbl.add_row(source.url, str(source.servers), str(source.players), status)
    console.print(tbl)
    console.print(
        f"{report.merge.servers} servers and {report.merge.players} players!"
    )

    if report.persisted:
        console.print(f"[green]✓[/green] Saved sample #{report.row_id}")
    if report.exported_rows is not None:
        console.print(f"[green]✓[/green] Wrote {report.exported_rows} rows to {csv_path}")
    for error in report.errors:
        console.print(f"[red]✗[/red] {error}")

    if not report.success:
        sys.exit(1)


# ============== CSV ==============

@cli.command()
@click.argument("csv_path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--retention-days", type=click.IntRange(min=1), default=None,
              help="Full-resolution window in days (default: RETENTION_DAYS)")
@click.pass_context
def export(ctx: click.Context, csv_path: Path, retention_days: Optional[int]):
    """Regenerate CSV_PATH from stored samples"""
    from popstats.pipeline.export_csv import export_population_csv

    async def run():
        async with open_store(ctx.obj["database_url"]) as store:
            return await export_population_csv(store, csv_path, retention_days=retention_days)

    try:
        written = asyncio.run(run())
    except (StoreError, OSError) as e:
        console.print(f"[red]✗[/red] Export failed: {e}")
        sys.exit(1)
    console.print(f"[green]✓[/green] Wrote {written} rows to {csv_path}")


@cli.command(name="import")
@click.argument("csv_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--batch-limit", type=click.IntRange(1, MAX_BATCH_ROWS), default=None,
              help="Lines per insert statement (default: IMPORT_BATCH_LIMIT)")
@click.pass_context
def import_(ctx: click.Context, csv_path: Path, batch_limit: Optional[int]):
    """Import the samples of CSV_PATH"""
    from popstats.pipeline.import_csv import import_population_csv

    console.print("[yellow]Importing existing records...[/yellow]")

    async def run():
        async with open_store(ctx.obj["database_url"]) as store:
            if batch_limit:
                store.max_batch_rows = batch_limit
            return await import_population_csv(store, csv_path, batch_limit=batch_limit)

    report = asyncio.run(run())

    tbl = Table(title="Import Summary")
    tbl.add_column("Chunks", justify="right")
    tbl.add_column("Lines", justify="right")
    tbl.add_column("Inserted", justify="right", style="green")
    tbl.add_column("Failed Chunks", justify="right", style="red")
    tbl.add_row(
        str(len(report.chunks)),
        str(report.total_lines),
        str(report.inserted_rows),
        str(len(report.failed_chunks)),
    )
    console.print(tbl)
    for chunk in report.failed_chunks:
        console.print(f"[red]✗[/red] chunk #{chunk.index} ({chunk.lines} lines): {chunk.error}")

    if not report.success:
        sys.exit(1)


# ============== Maintenance ==============

@cli.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def clear(ctx: click.Context, yes: bool):
    """Delete ALL stored samples"""
    if not yes and not click.confirm("⚠️  This will DELETE ALL SAMPLES. Are you sure?"):
        console.print("[yellow]Aborted[/yellow]")
        return

    console.print("[yellow]Clearing the database...[/yellow]")

    async def run():
        async with open_store(ctx.obj["database_url"]) as store:
            return await store.clear_all()

    try:
        deleted = asyncio.run(run())
    except StoreError as e:
        console.print(f"[red]✗[/red] {e}")
        sys.exit(1)
    console.print(f"[green]✓[/green] Deleted {deleted} samples")


@cli.command()
@click.pass_context
def stats(ctx: click.Context):
    """Show stored sample statistics"""

    async def run():
        async with open_store(ctx.obj["database_url"]) as store:
            health = await store.db.health_check()
            return health, await store.count(), await store.latest()

    try:
        health, count, latest = asyncio.run(run())
    except StoreError as e:
        console.print(f"[red]✗[/red] {e}")
        sys.exit(1)

    tbl = Table(title="Population Statistics")
    tbl.add_column("Metric", style="cyan")
    tbl.add_column("Value", justify="right", style="green")
    tbl.add_row("Database", f"{health['backend']}: {health['status']} ({health.get('latency_ms', '-')} ms)")
    tbl.add_row("Samples", str(count))
    if latest is not None:
        tbl.add_row("Latest sample", f"{latest.date:%Y-%m-%d %H:%M}")
        tbl.add_row("Servers", str(latest.servers))
        tbl.add_row("Players", str(latest.players))
    console.print(tbl)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
