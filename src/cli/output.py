"""Shared helpers for CLI commands: service wiring and output formats."""

import json
from typing import Any

import typer
from rich.console import Console

from src.api.responses import dump
from src.config.settings import Settings
from src.services.market_data import MarketDataService, create_market_data_service

console = Console()

OUTPUT_FORMATS = ("rich", "json", "plain")


def validate_format(output_format: str) -> str:
    """Check the --format value.

    Raises:
        typer.Exit: On an unknown format
    """
    if output_format not in OUTPUT_FORMATS:
        console.print(
            f"[red]Error:[/red] Invalid format. "
            f"Choose from: {', '.join(OUTPUT_FORMATS)}"
        )
        raise typer.Exit(code=1)
    return output_format


def build_service(settings: Settings | None = None) -> MarketDataService:
    """Create a market data service from environment settings."""
    return create_market_data_service(settings or Settings.from_env())


def echo_json(data: Any) -> None:
    """Print models or plain data as indented JSON."""
    typer.echo(json.dumps(dump(data), indent=2, default=str))


def format_price(value: float | None) -> str:
    """Format a USD amount with precision suited to its magnitude."""
    if value is None:
        return "-"
    if abs(value) >= 1:
        return f"{value:,.2f}"
    return f"{value:.6f}"


def format_change(value: float | None) -> str:
    """Format a percent change with a colored sign for rich output."""
    if value is None:
        return "-"
    color = "green" if value >= 0 else "red"
    return f"[{color}]{value:+.2f}%[/{color}]"
