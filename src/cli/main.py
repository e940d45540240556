"""Typer application for the market data service.

Global options configure logging; the market, watchlist and serve commands
are registered below the callback.
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from src.config.logging import setup_logging

app = typer.Typer(
    name="market-data",
    help="Market data aggregator - crypto, stock and precious metal prices.",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output (DEBUG level logging).",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress non-essential output (WARNING level logging).",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Also write JSON log lines to this file.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit console logs as JSON objects.",
    ),
) -> None:
    """Market data aggregator.

    Fetches prices from CoinGecko, CoinMarketCap, Alpha Vantage and
    Metals-API with provider fallback and caching, and serves them over a
    REST API.
    """
    if verbose and quiet:
        console.print(
            "[yellow]Warning:[/yellow] --verbose and --quiet conflict. Using --verbose."
        )

    log_level = "DEBUG" if verbose else "WARNING" if quiet else "INFO"
    setup_logging(level=log_level, log_file=log_file, use_json=json_logs)


# Commands import after `app` exists
from src.cli.commands.market import (  # noqa: E402
    assets,
    history,
    overview,
    price,
    search,
)
from src.cli.commands.serve import serve  # noqa: E402
from src.cli.commands.watchlist import watchlist_app  # noqa: E402

app.command(name="price")(price)
app.command(name="history")(history)
app.command(name="search")(search)
app.command(name="overview")(overview)
app.command(name="assets")(assets)
app.command(name="serve")(serve)
app.add_typer(watchlist_app, name="watchlist")


def cli_main() -> None:
    """Entry point for the CLI application."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        raise typer.Exit(code=130) from None
    except Exception as e:
        logging.getLogger(__name__).exception("Unhandled CLI error")
        console.print(f"\n[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e


if __name__ == "__main__":
    cli_main()
