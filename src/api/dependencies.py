"""FastAPI dependencies resolving the services attached to the app."""

from fastapi import Request

from src.services.market_data import MarketDataService
from src.services.watchlist import WatchlistService


def get_market_data(request: Request) -> MarketDataService:
    """Market data aggregator of the running app."""
    return request.app.state.market_data


def get_watchlist(request: Request) -> WatchlistService:
    """Watchlist service of the running app."""
    return request.app.state.watchlist
