"""watchstate CLI — inspect and migrate the stored watch progress.

`watchstate show` loads the store (running any pending migrations), waits
for background reconciliation and prints the items.
`watchstate status` reports the stored and latest schema versions and the
stored item count.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Coroutine

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from watchstate.config import settings
from watchstate.exceptions import MigrationError, ParseError
from watchstate.logging_config import configure_logging
from watchstate.metadata.client import HttpMetadataProvider
from watchstate.storage.backend import FileBackend
from watchstate.storage.store import VersionedStore, decode_blob
from watchstate.types import WatchedStoreData
from watchstate.watched.store import VideoProgress, build_progress_chain

console = Console()

app = typer.Typer(
    name="watchstate",
    help="watchstate -- versioned watch progress with background reconciliation.",
    no_args_is_help=True,
)


def run_async(coro: Coroutine) -> Any:
    """Run an async coroutine from sync CLI code."""
    return asyncio.run(coro)


def _progress() -> VideoProgress:
    # Lookups are only needed to reconcile legacy records.
    provider = HttpMetadataProvider() if settings.metadata_url else None
    return VideoProgress(backend=FileBackend(settings.data_dir), provider=provider)


def _stored_item_count(backend: FileBackend, key: str) -> int | None:
    raw = backend.get(key)
    if raw is None:
        return None
    try:
        _, body = decode_blob(raw)
    except ParseError:
        return None
    items = body.get("items")
    return len(items) if isinstance(items, list) else None


@app.callback()
def main(
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Log level"),
):
    """Configure logging for every subcommand."""
    configure_logging(log_level)


@app.command("show")
def show(
    limit: int = typer.Option(50, "--limit", "-n", help="Max items to print"),
):
    """Load watch progress, migrating and reconciling if needed."""
    progress = _progress()

    async def _show() -> WatchedStoreData:
        progress.load()
        await progress.wait_for_background()
        return progress.load()

    try:
        data = run_async(_show())
    except MigrationError as e:
        console.print(f"[red]Could not load '{progress.store.key}':[/red] {escape(str(e))}")
        if not settings.metadata_url:
            console.print(
                "Legacy records need lookups. Run: "
                "[bold]export WATCHSTATE_METADATA_URL=https://...[/bold]"
            )
        raise typer.Exit(1)

    if not data.items:
        console.print("[dim]No watch progress stored.[/dim]")
        return

    table = Table(title=f"Watch progress — '{progress.store.key}'")
    table.add_column("Watched", style="dim", no_wrap=True, max_width=19)
    table.add_column("Title", style="white")
    table.add_column("Episode", style="cyan", max_width=10)
    table.add_column("Progress", style="green", justify="right")

    for entry in data.items[:limit]:
        series = entry.item.series
        table.add_row(
            datetime.fromtimestamp(entry.watched_at / 1000).strftime("%Y-%m-%d %H:%M"),
            entry.item.meta.title or entry.item.meta.id,
            f"S{series.season:02d}E{series.episode:02d}" if series else "",
            f"{entry.percentage:.0f}%",
        )

    console.print(table)


@app.command("status")
def status():
    """Show the stored and latest schema versions and the item count."""
    backend = FileBackend(settings.data_dir)
    store = VersionedStore(
        settings.store_key, build_progress_chain(lambda _legacy: None), backend,
    )
    stored = store.version()
    latest = store.chain.latest_version
    count = _stored_item_count(backend, store.key)

    if stored is None:
        state = "[yellow]empty[/yellow]"
    elif stored < latest:
        state = "[yellow]needs migration[/yellow]"
    else:
        state = "[green]current[/green]"

    console.print(Panel(
        f"Key:       {store.key}\n"
        f"File:      {backend.path_for(store.key)}\n"
        f"Stored:    {stored if stored is not None else '-'}\n"
        f"Latest:    {latest}\n"
        f"Items:     {count if count is not None else '-'}\n"
        f"State:     {state}",
        title="Store Status",
        border_style="cyan",
    ))


@app.command("version")
def version():
    """Print the installed version."""
    from watchstate import __version__
    console.print(f"watchstate v{__version__}")


if __name__ == "__main__":
    app()
