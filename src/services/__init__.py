"""Application services: market data aggregation and watchlists."""

from src.services.market_data import (
    MarketDataService,
    create_market_data_service,
)
from src.services.watchlist import WatchlistService

__all__ = [
    "MarketDataService",
    "WatchlistService",
    "create_market_data_service",
]
