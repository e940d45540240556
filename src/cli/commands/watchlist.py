"""Watchlist commands: add, remove and list assets a user follows."""

from __future__ import annotations

import logging
import os
from typing import Optional

import typer
from rich.table import Table

from src.cli.output import (
    console,
    echo_json,
    format_change,
    format_price,
    validate_format,
)
from src.config.settings import Settings
from src.data.models import AssetType
from src.data.storage.duckdb import DuckDBStorage, PathValidationError
from src.errors import AppError
from src.services.market_data import create_market_data_service
from src.services.watchlist import WatchlistService

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "data/market_data.duckdb"

watchlist_app = typer.Typer(
    help="Manage per-user watchlists stored in DuckDB.",
    no_args_is_help=True,
)

USER_OPTION = typer.Option("default", "--user", "-u", help="Watchlist owner.")
DATABASE_OPTION = typer.Option(
    None,
    "--database",
    "-d",
    help=f"Path to DuckDB database (default: $DATABASE_PATH or {DEFAULT_DATABASE}).",
)


def _open_storage(db_path: Optional[str]) -> DuckDBStorage:
    path = db_path or os.getenv("DATABASE_PATH") or DEFAULT_DATABASE
    try:
        return DuckDBStorage(path)
    except PathValidationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from None


@watchlist_app.command("add")
def add(
    symbol: str = typer.Argument(..., help="Asset symbol to follow."),
    asset_type: Optional[str] = typer.Option(
        None, "--type", "-t", help="'crypto', 'stock' or 'metal' (inferred if omitted)."
    ),
    user: str = USER_OPTION,
    db_path: Optional[str] = DATABASE_OPTION,
) -> None:
    """Add an asset to a watchlist.

    Example:
        market-data watchlist add BTC --user alice
    """
    parsed_type = None
    if asset_type:
        try:
            parsed_type = AssetType(asset_type.lower())
        except ValueError:
            console.print(f"[red]Error:[/red] Invalid asset type: {asset_type}")
            raise typer.Exit(code=1) from None

    with _open_storage(db_path) as storage:
        try:
            entry = WatchlistService(storage).add(user, symbol, parsed_type)
        except AppError as e:
            console.print(f"[red]Error:[/red] {e.message}")
            raise typer.Exit(code=1) from None

    console.print(
        f"[green]Added[/green] {entry.symbol} ({entry.asset_type.value}) "
        f"to the watchlist of {entry.user_id}"
    )


@watchlist_app.command("remove")
def remove(
    symbol: str = typer.Argument(..., help="Asset symbol to drop."),
    user: str = USER_OPTION,
    db_path: Optional[str] = DATABASE_OPTION,
) -> None:
    """Remove an asset from a watchlist."""
    with _open_storage(db_path) as storage:
        try:
            WatchlistService(storage).remove(user, symbol)
        except AppError as e:
            console.print(f"[red]Error:[/red] {e.message}")
            raise typer.Exit(code=1) from None

    console.print(
        f"[green]Removed[/green] {symbol.upper()} from the watchlist of {user}"
    )


@watchlist_app.command("list")
def list_entries(
    user: str = USER_OPTION,
    prices: bool = typer.Option(
        False, "--prices", "-p", help="Include latest prices."
    ),
    db_path: Optional[str] = DATABASE_OPTION,
    output_format: str = typer.Option(
        "rich",
        "--format",
        "-f",
        help="Output format: 'rich' (default), 'json', or 'plain'.",
    ),
) -> None:
    """Show a watchlist.

    Example:
        market-data watchlist list --user alice --prices
    """
    validate_format(output_format)

    with _open_storage(db_path) as storage:
        if prices:
            service = create_market_data_service(Settings.from_env(), storage=storage)
            try:
                items = WatchlistService(storage, service).list_with_prices(user)
            finally:
                service.close()
        else:
            entries = WatchlistService(storage).list(user)

    if output_format == "json":
        echo_json(items if prices else entries)
        return

    if prices:
        rows = [
            (
                item.symbol,
                item.asset_type.value,
                item.quote.price if item.quote else None,
                item.quote.change_percent if item.quote else None,
            )
            for item in items
        ]
    else:
        rows = [(e.symbol, e.asset_type.value, None, None) for e in entries]

    if output_format == "plain":
        for symbol, kind, value, _ in rows:
            suffix = f"\t{format_price(value)}" if prices else ""
            typer.echo(f"{symbol}\t{kind}{suffix}")
        return

    if not rows:
        console.print(f"[yellow]The watchlist of {user} is empty.[/yellow]")
        return

    table = Table(title=f"Watchlist: {user}")
    table.add_column("Symbol", style="cyan")
    table.add_column("Type")
    if prices:
        table.add_column("Price (USD)", justify="right")
        table.add_column("24h", justify="right")
    for symbol, kind, value, change in rows:
        if prices:
            table.add_row(symbol, kind, format_price(value), format_change(change))
        else:
            table.add_row(symbol, kind)
    console.print(table)
