"""CLI commands for the market data service."""

from src.cli.commands.market import assets, history, overview, price, search
from src.cli.commands.serve import serve
from src.cli.commands.watchlist import watchlist_app

__all__ = [
    "assets",
    "history",
    "overview",
    "price",
    "search",
    "serve",
    "watchlist_app",
]
