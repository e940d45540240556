"""Data fetchers for upstream market data providers."""

from src.data.fetchers.alpha_vantage import AlphaVantageFetcher
from src.data.fetchers.base import (
    BaseFetcher,
    DataNotAvailableError,
    FetchError,
    HistoryProvider,
    PriceProvider,
    RateLimitError,
    SearchProvider,
)
from src.data.fetchers.coingecko import CoinGeckoFetcher
from src.data.fetchers.coinmarketcap import CoinMarketCapFetcher
from src.data.fetchers.metals import MetalsAPIFetcher
from src.data.fetchers.mock import MockFetcher

__all__ = [
    "BaseFetcher",
    "FetchError",
    "RateLimitError",
    "DataNotAvailableError",
    "PriceProvider",
    "HistoryProvider",
    "SearchProvider",
    "CoinGeckoFetcher",
    "CoinMarketCapFetcher",
    "AlphaVantageFetcher",
    "MetalsAPIFetcher",
    "MockFetcher",
]
