"""CLI module for the market data service.

This module provides a command-line interface for querying aggregated market
data, managing watchlists and running the REST API.

Commands:
    price: Show the latest price of an asset
    history: Show daily price history
    search: Search assets by name or symbol
    overview: Show the market overview
    assets: List known assets
    watchlist: Add, remove and list watchlist entries
    serve: Run the REST API
"""

from src.cli.main import app

__all__ = ["app"]
