"""Market data commands: price, history, search, overview and assets.

Every command queries the same aggregator the REST API serves, configured
from the environment (set USE_MOCK_DATA=true to work offline).
"""

from __future__ import annotations

import logging
from typing import Optional

import typer
from rich.panel import Panel
from rich.table import Table

from src.cli.output import (
    build_service,
    console,
    echo_json,
    format_change,
    format_price,
    validate_format,
)
from src.data.models import (
    AssetCategory,
    AssetPrice,
    AssetType,
    HistoricalDataPoint,
    ListAssetsOptions,
    MarketAsset,
    MarketOverview,
    SearchResult,
    SortField,
    SortOrder,
)
from src.errors import AppError

logger = logging.getLogger(__name__)

FORMAT_OPTION_HELP = "Output format: 'rich' (default), 'json', or 'plain'."


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(code=1)


def price(
    symbol: str = typer.Argument(..., help="Asset symbol, e.g. BTC, AAPL or XAU."),
    output_format: str = typer.Option(
        "rich", "--format", "-f", help=FORMAT_OPTION_HELP
    ),
) -> None:
    """Show the latest price of an asset.

    Example:
        market-data price BTC
        market-data price XAU --format json
    """
    validate_format(output_format)
    service = build_service()
    try:
        with console.status(f"[bold blue]Fetching {symbol.upper()}...[/bold blue]"):
            quote = service.get_asset_price(symbol)
    except AppError as e:
        _fail(e.message)
    finally:
        service.close()

    if quote is None:
        _fail(f"Price data not found for {symbol.upper()}")

    if output_format == "json":
        echo_json(quote)
    elif output_format == "plain":
        _display_plain_price(quote)
    else:
        _display_rich_price(quote)


def _display_plain_price(quote: AssetPrice) -> None:
    unit = f" per {quote.unit}" if quote.unit else ""
    typer.echo(f"{quote.symbol}: {format_price(quote.price)} USD{unit}")
    typer.echo(f"Change 24h: {quote.change:+.2f} ({quote.change_percent:+.2f}%)")
    typer.echo(f"Source: {quote.source}")


def _display_rich_price(quote: AssetPrice) -> None:
    lines = [
        f"[bold]{format_price(quote.price)} USD[/bold]"
        + (f" per {quote.unit}" if quote.unit else ""),
        f"24h change: {quote.change:+,.2f} ({format_change(quote.change_percent)})",
    ]
    if quote.price_in_btc is not None:
        lines.append(f"In BTC: {quote.price_in_btc:.8f}")
    updated = f"{quote.last_updated:%Y-%m-%d %H:%M} UTC"
    lines.append(f"[dim]Source: {quote.source} | {updated}[/dim]")

    title = f"{quote.symbol}" + (f" - {quote.name}" if quote.name else "")
    console.print(Panel("\n".join(lines), title=title, border_style="blue"))


def history(
    symbol: str = typer.Argument(..., help="Asset symbol."),
    days: int = typer.Option(30, "--days", "-d", help="Number of days (1-3650)."),
    output_format: str = typer.Option(
        "rich", "--format", "-f", help=FORMAT_OPTION_HELP
    ),
) -> None:
    """Show daily price history of an asset.

    Example:
        market-data history ETH --days 7
    """
    validate_format(output_format)
    service = build_service()
    try:
        points = service.get_historical_data(symbol, days)
    except AppError as e:
        _fail(e.message)
    finally:
        service.close()

    if output_format == "json":
        echo_json(points)
        return
    if not points:
        _fail(f"No historical data available for {symbol.upper()}")

    if output_format == "plain":
        for point in points:
            typer.echo(f"{point.date.isoformat()}\t{format_price(point.close)}")
    else:
        _display_rich_history(symbol.upper(), points)


def _display_rich_history(symbol: str, points: list[HistoricalDataPoint]) -> None:
    table = Table(title=f"{symbol} - last {len(points)} days")
    table.add_column("Date", style="cyan")
    table.add_column("Open", justify="right")
    table.add_column("High", justify="right")
    table.add_column("Low", justify="right")
    table.add_column("Close", justify="right", style="bold")
    table.add_column("Volume", justify="right")

    for point in points:
        table.add_row(
            point.date.isoformat(),
            format_price(point.open),
            format_price(point.high),
            format_price(point.low),
            format_price(point.close),
            f"{point.volume:,.0f}" if point.volume is not None else "-",
        )

    first, last = points[0].close, points[-1].close
    if first:
        table.caption = f"Period change: {format_change((last - first) / first * 100)}"
    console.print(table)


def search(
    query: str = typer.Argument(..., help="Name or symbol to look for."),
    asset_type: Optional[str] = typer.Option(
        None, "--type", "-t", help="Restrict to 'crypto', 'stock' or 'metal'."
    ),
    output_format: str = typer.Option(
        "rich", "--format", "-f", help=FORMAT_OPTION_HELP
    ),
) -> None:
    """Search assets by name or symbol.

    Example:
        market-data search apple --type stock
    """
    validate_format(output_format)
    parsed_type = None
    if asset_type:
        try:
            parsed_type = AssetType(asset_type.lower())
        except ValueError:
            _fail(
                "Invalid asset type. Choose from: "
                f"{', '.join(t.value for t in AssetType)}"
            )

    service = build_service()
    try:
        results = service.search_assets(query, parsed_type)
    except AppError as e:
        _fail(e.message)
    finally:
        service.close()

    if output_format == "json":
        echo_json(results)
    elif output_format == "plain":
        for result in results:
            typer.echo(f"{result.symbol}\t{result.name}\t{result.asset_type.value}")
    else:
        _display_rich_search(query, results)


def _display_rich_search(query: str, results: list[SearchResult]) -> None:
    if not results:
        console.print(f"[yellow]No assets match '{query}'.[/yellow]")
        return

    table = Table(title=f"Search results for '{query}'")
    table.add_column("Symbol", style="cyan")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Region")
    for result in results:
        table.add_row(
            result.symbol, result.name, result.asset_type.value, result.region or "-"
        )
    console.print(table)


def overview(
    output_format: str = typer.Option(
        "rich", "--format", "-f", help=FORMAT_OPTION_HELP
    ),
) -> None:
    """Show global crypto metrics, metal prices and popular assets."""
    validate_format(output_format)
    service = build_service()
    try:
        with console.status("[bold blue]Building market overview...[/bold blue]"):
            data = service.get_market_overview()
    finally:
        service.close()

    if output_format == "json":
        echo_json(data)
    elif output_format == "plain":
        _display_plain_overview(data)
    else:
        _display_rich_overview(data)


def _display_plain_overview(data: MarketOverview) -> None:
    if data.crypto:
        typer.echo(f"Crypto market cap: {data.crypto.total_market_cap:,.0f} USD")
        typer.echo(f"Crypto 24h volume: {data.crypto.total_volume_24h:,.0f} USD")
        typer.echo(f"BTC dominance: {data.crypto.btc_dominance:.2f}%")
    for symbol, value in data.metals.items():
        typer.echo(f"{symbol}: {format_price(value)} USD")
    for quote in data.top_assets:
        typer.echo(f"{quote.symbol}: {format_price(quote.price)} USD")


def _display_rich_overview(data: MarketOverview) -> None:
    if data.crypto:
        console.print(
            Panel(
                f"Market cap: [bold]{data.crypto.total_market_cap:,.0f}[/bold] USD\n"
                f"24h volume: {data.crypto.total_volume_24h:,.0f} USD\n"
                f"BTC dominance: {data.crypto.btc_dominance:.2f}%  "
                f"ETH dominance: {data.crypto.eth_dominance:.2f}%",
                title="Crypto Market",
                border_style="blue",
            )
        )
    else:
        console.print("[yellow]Global crypto metrics unavailable.[/yellow]")

    if data.metals:
        metals = Table(title="Precious Metals (USD / troy ounce)")
        metals.add_column("Symbol", style="cyan")
        metals.add_column("Price", justify="right")
        for symbol, value in data.metals.items():
            metals.add_row(symbol, format_price(value))
        console.print(metals)

    if data.top_assets:
        console.print(_price_table("Popular Assets", data.top_assets))


def _price_table(title: str, quotes: list[AssetPrice]) -> Table:
    table = Table(title=title)
    table.add_column("Symbol", style="cyan")
    table.add_column("Price (USD)", justify="right")
    table.add_column("24h", justify="right")
    table.add_column("Source", style="dim")
    for quote in quotes:
        table.add_row(
            quote.symbol,
            format_price(quote.price),
            format_change(quote.change_percent),
            quote.source,
        )
    return table


def assets(
    category: Optional[str] = typer.Option(
        None,
        "--category",
        "-c",
        help="Filter by category: Cryptocurrency, Stocks, 'Precious Metal'.",
    ),
    search_query: Optional[str] = typer.Option(
        None, "--search", "-s", help="Filter by name or symbol."
    ),
    sort_by: Optional[str] = typer.Option(
        None, "--sort-by", help="Sort by symbol, name, price or change_percent."
    ),
    descending: bool = typer.Option(False, "--desc", help="Sort descending."),
    limit: int = typer.Option(100, "--limit", "-n", help="Maximum assets (1-250)."),
    output_format: str = typer.Option(
        "rich", "--format", "-f", help=FORMAT_OPTION_HELP
    ),
) -> None:
    """List known assets.

    Example:
        market-data assets --category Cryptocurrency --sort-by price --desc
    """
    validate_format(output_format)
    try:
        options = ListAssetsOptions(
            category=AssetCategory(category) if category else None,
            search_query=search_query,
            sort_by=SortField(sort_by) if sort_by else None,
            sort_order=SortOrder.DESC if descending else SortOrder.ASC,
            limit=limit,
        )
    except ValueError as e:
        _fail(f"Invalid option: {e}")

    service = build_service()
    try:
        listed = service.list_assets(options)
    finally:
        service.close()

    if output_format == "json":
        echo_json(listed)
    elif output_format == "plain":
        for asset in listed:
            typer.echo(f"{asset.symbol}\t{asset.name}\t{asset.category.value}")
    else:
        _display_rich_assets(listed)


def _display_rich_assets(listed: list[MarketAsset]) -> None:
    table = Table(title=f"Assets ({len(listed)})")
    table.add_column("Symbol", style="cyan")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Price (USD)", justify="right")
    table.add_column("24h", justify="right")
    for asset in listed:
        table.add_row(
            asset.symbol,
            asset.name,
            asset.category.value,
            format_price(asset.price),
            format_change(asset.change_percent),
        )
    console.print(table)
