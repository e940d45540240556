"""Data layer for fetching, caching and storing market data."""

from src.data.models import (
    AssetCategory,
    AssetPrice,
    AssetType,
    CryptoMarketOverview,
    HistoricalDataPoint,
    ListAssetsOptions,
    MarketAsset,
    MarketOverview,
    SearchResult,
    SortField,
    SortOrder,
    WatchlistEntry,
    WatchlistItem,
)

__all__ = [
    "AssetCategory",
    "AssetType",
    "AssetPrice",
    "HistoricalDataPoint",
    "MarketAsset",
    "SearchResult",
    "CryptoMarketOverview",
    "MarketOverview",
    "ListAssetsOptions",
    "SortField",
    "SortOrder",
    "WatchlistEntry",
    "WatchlistItem",
]
