"""
CLI for scancore.

Provides command-line access to time-window resolution, the indexed-file
cache and batch indexing against the local index backend.
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from scancore.core.config import configure_logging, load_config
from scancore.core.index_status import derive_index_status
from scancore.core.models import local_now
from scancore.core.time_window import (
    InvalidTimeRangeError,
    TimeRangeSelector,
    exceeds_scanned,
    resolve_window,
)
from scancore.services import IndexMode, IndexOutcome, create_services

# Initialize Rich Console
console = Console()

app = typer.Typer(
    name="scancore",
    help="Scan session core - time windows, indexed files and batch indexing",
    add_completion=False,
)

_STATUS_STYLES = {
    "not_indexed": "dim",
    "fast": "cyan",
    "deep": "green",
    "pending": "yellow",
    "error": "red",
}


@app.callback()
def main(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to a YAML or JSON configuration file"
    ),
):
    """Load .env and configure logging before any command runs."""
    load_dotenv()
    try:
        configure_logging(load_config(config_path).logging)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _format_bound(value) -> str:
    return value.isoformat(sep=" ", timespec="seconds") if value else "unbounded"


@app.command()
def window(
    selector: str = typer.Argument(
        ..., help="Time range: 24h, 1w, 1m, 3m, 6m, yearYYYY, all or custom"
    ),
    date_from: Optional[str] = typer.Option(None, "--from", help="Custom range start (YYYY-MM-DD)"),
    date_to: Optional[str] = typer.Option(None, "--to", help="Custom range end (YYYY-MM-DD)"),
    scanned: Optional[str] = typer.Option(
        None, "--scanned", help="Time range the last scan used"
    ),
    scanned_from: Optional[str] = typer.Option(None, "--scanned-from", help="Scanned custom start"),
    scanned_to: Optional[str] = typer.Option(None, "--scanned-to", help="Scanned custom end"),
):
    """Resolve a time range and compare it with a scanned range."""
    try:
        selected = TimeRangeSelector.parse(selector, date_from, date_to)
        scanned_selector = (
            TimeRangeSelector.parse(scanned, scanned_from, scanned_to) if scanned else None
        )
    except InvalidTimeRangeError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    now = local_now()
    resolved = resolve_window(selected, now)

    summary = Table.grid(padding=1)
    summary.add_column(style="bold")
    summary.add_column()
    summary.add_row("Range:", selected.label)
    summary.add_row("From:", _format_bound(resolved.start))
    summary.add_row("To:", _format_bound(resolved.end))
    if not selected.is_resolved:
        summary.add_row("Note:", "[yellow]no start date, date filter is not applied[/yellow]")

    if scanned_selector is not None:
        exceeds = exceeds_scanned(selected, scanned_selector, now)
        summary.add_row("Scanned:", scanned_selector.label)
        summary.add_row(
            "Exceeds scan:",
            "[bold yellow]yes, rescan needed[/bold yellow]" if exceeds else "[green]no[/green]",
        )

    console.print(Panel(summary, title="Time Window", expand=False))


@app.command()
def indexed(
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum rows to print"),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to a YAML or JSON configuration file"
    ),
):
    """List files known to the index backend with their index status."""
    try:
        container = create_services(config_path=config_path)

        async def refresh() -> bool:
            try:
                return await container.cache.refresh()
            finally:
                await container.close()

        if not asyncio.run(refresh()):
            console.print(f"[bold red]Error:[/bold red] {container.cache.last_error}")
            raise typer.Exit(1)

        snapshot = container.cache.snapshot
        if not snapshot:
            console.print("[yellow]No indexed files.[/yellow]")
            return

        table = Table(title=f"Indexed Files ({len(snapshot)})")
        table.add_column("Path", style="bold")
        table.add_column("Status")
        for path in sorted(snapshot)[: max(0, limit)]:
            status = derive_index_status(path, snapshot).value
            style = _STATUS_STYLES.get(status, "")
            table.add_row(path, f"[{style}]{status}[/{style}]" if style else status)
        console.print(table)

        if len(snapshot) > limit:
            console.print(f"[dim]... and {len(snapshot) - limit} more[/dim]")

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def index(
    paths: list[str] = typer.Argument(..., help="Files to index"),
    mode: str = typer.Option("fast", "--mode", "-m", help="Indexing mode: fast or deep"),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to a YAML or JSON configuration file"
    ),
):
    """Register the parent folders of PATHS and index the files."""
    try:
        index_mode = IndexMode.parse(mode)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(f"[bold blue]Indexing[/bold blue] {len(paths)} file(s) in {index_mode.value} mode...")

    try:
        container = create_services(config_path=config_path)

        async def run() -> IndexOutcome:
            try:
                if len(paths) == 1:
                    return await container.coordinator.index_file(paths[0], index_mode)
                return await container.coordinator.index_files(paths, index_mode)
            finally:
                await container.close()

        outcome = asyncio.run(run())
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    summary = Table.grid(padding=1)
    summary.add_column(style="bold")
    summary.add_column()
    summary.add_row("Files:", str(len(outcome.files)))
    summary.add_row("Folders:", str(len(outcome.folders)))
    summary.add_row("Duration:", f"{outcome.duration_ms / 1000:.2f}s")
    console.print(Panel(summary, title="Indexing Summary", expand=False))

    for folder in outcome.failed_registrations:
        console.print(f"  [yellow]![/yellow] Could not register folder {folder}")

    if not outcome.success:
        console.print(f"[bold red]Error:[/bold red] {outcome.error}")
        raise typer.Exit(1)
    console.print("[bold green]Indexing request submitted.[/bold green]")


@app.command("config")
def show_config(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to a YAML or JSON configuration file"
    ),
):
    """Print the resolved configuration."""
    try:
        cfg = load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    console.print(Syntax(cfg.to_yaml(), "yaml"))


if __name__ == "__main__":
    app()
