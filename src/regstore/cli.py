"""
regstore CLI - Command-line interface.

Inspect and edit a store from the terminal.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from regstore.core.config import RESERVED_REGISTRY_ID, StoreSettings, UpdateMode
from regstore.core.exceptions import BackendIOError, ConfigurationError, format_exception
from regstore.store import RegisteredStore, open_store

app = typer.Typer(
    name="regstore",
    help="regstore - Self-describing key/value storage",
    no_args_is_help=True,
)
console = Console()


def _store(ctx: typer.Context) -> RegisteredStore:
    return ctx.obj["store"]


def _printable(value: Any) -> Any:
    """Make a decoded value JSON-printable."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    if isinstance(value, dict):
        return {str(k): _printable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_printable(v) for v in value]
    return value


@app.callback()
def main(
    ctx: typer.Context,
    root: Optional[Path] = typer.Option(
        None, "--root", "-r", help="Storage root (default: $REGSTORE_ROOT)"
    ),
    update_mode: Optional[UpdateMode] = typer.Option(
        None, "--update-mode", help="How updates replace records"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show store logging"),
):
    """Open the store shared by all commands."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )

    try:
        settings = StoreSettings.from_env(root=root, update_mode=update_mode)
    except ConfigurationError as e:
        console.print(f"[red]{format_exception(e)}[/red]")
        raise typer.Exit(2)

    ctx.obj = {"settings": settings, "store": open_store(settings)}


@app.command("ls")
def list_entries(ctx: typer.Context):
    """List registered records."""
    entries = _store(ctx).get_registry()

    table = Table(title=f"Registry ({len(entries)} records)")
    table.add_column("Storage ID", style="cyan")
    table.add_column("Classification", style="magenta")
    table.add_column("Modified")
    table.add_column("Safe ID", style="dim")

    for storage_id in sorted(entries):
        entry = entries[storage_id]
        modified = datetime.fromtimestamp(entry.modified, tz=timezone.utc)
        table.add_row(
            storage_id,
            entry.classification,
            modified.strftime("%Y-%m-%d %H:%M:%S"),
            entry.safe_id[:12],
        )

    console.print(table)


@app.command()
def get(
    ctx: typer.Context,
    storage_id: str = typer.Argument(..., help="Storage id to read"),
):
    """Print a stored value as JSON."""
    result = _store(ctx).lookup(storage_id)
    if not result.found:
        console.print(f"[red]No readable record for: {storage_id}[/red]")
        raise typer.Exit(1)
    console.print_json(json.dumps(_printable(result.value)))


@app.command()
def put(
    ctx: typer.Context,
    storage_id: str = typer.Argument(..., help="Storage id to write"),
    value: str = typer.Argument(..., help="Value as JSON"),
):
    """Store a JSON value, replacing any existing record."""
    if storage_id == RESERVED_REGISTRY_ID:
        console.print(f"[red]'{RESERVED_REGISTRY_ID}' is reserved[/red]")
        raise typer.Exit(1)
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON: {e}[/red]")
        raise typer.Exit(1)

    store = _store(ctx)
    if store.exists(storage_id):
        ok = store.update(storage_id, parsed)
        action = "Updated"
    else:
        ok = store.create(storage_id, parsed)
        action = "Created"

    if not ok:
        console.print(f"[red]Failed to store: {storage_id}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]{action}:[/green] {storage_id}")


@app.command()
def rm(
    ctx: typer.Context,
    storage_id: str = typer.Argument(..., help="Storage id to delete"),
):
    """Delete a record and its registry entry."""
    if not _store(ctx).delete(storage_id):
        console.print(f"[red]Failed to delete: {storage_id}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Deleted:[/green] {storage_id}")


@app.command()
def info(
    ctx: typer.Context,
    storage_id: str = typer.Argument(..., help="Storage id to describe"),
    field: str = typer.Argument("*", help="Single registry field to show"),
):
    """Show registry data for a record."""
    data = _store(ctx).get_registry_data(storage_id, field)
    if data is False:
        console.print(f"[red]No registry data for: {storage_id} ({field})[/red]")
        raise typer.Exit(1)

    if not isinstance(data, dict):
        console.print(str(data))
        return

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for name, value in data.items():
        table.add_row(name, str(value))
    console.print(Panel.fit(table, title=storage_id))


@app.command()
def check(
    ctx: typer.Context,
    repair: bool = typer.Option(False, "--repair", help="Drop dangling registry entries"),
):
    """Reconcile the registry with the stored records."""
    try:
        report = _store(ctx).reconcile(repair=repair)
    except BackendIOError as e:
        console.print(f"[red]Check failed: {format_exception(e)}[/red]")
        raise typer.Exit(1)

    style = "green" if report.consistent else "red"
    status = "CONSISTENT" if report.consistent else "INCONSISTENT"
    console.print(
        Panel.fit(
            f"[bold blue]Registry Check[/bold blue]\n"
            f"Entries checked: {report.checked}\n"
            f"Status: [{style}]{status}[/{style}]",
        )
    )

    rows = [
        ("Dangling entry", report.dangling),
        ("Unregistered record", report.unregistered),
        ("Stale safe id", report.mismatched),
        ("Repaired", report.repaired),
    ]
    if any(ids for _, ids in rows):
        table = Table(title="Findings")
        table.add_column("Finding", style="cyan")
        table.add_column("ID")
        for label, ids in rows:
            for item in ids:
                table.add_row(label, item)
        console.print(table)

    if not report.consistent:
        raise typer.Exit(1)


@app.command("safe-id")
def safe_id(
    ctx: typer.Context,
    storage_id: str = typer.Argument(..., help="Storage id to hash"),
):
    """Print the safe id a storage id maps to."""
    console.print(_store(ctx).safe_id(storage_id))


@app.command()
def version():
    """Show regstore version."""
    from regstore import __version__

    console.print(f"regstore v{__version__}")
