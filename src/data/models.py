"""Pydantic models for market data.

This module defines the normalized shapes every upstream provider is mapped
into: asset prices, historical data points, asset listings, search results,
market overviews and watchlist entries.
"""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class AssetCategory(str, Enum):
    """Display category of a market asset."""

    CRYPTOCURRENCY = "Cryptocurrency"
    STOCKS = "Stocks"
    PRECIOUS_METAL = "Precious Metal"
    INDICES = "Indices"


class AssetType(str, Enum):
    """Routing class used to pick upstream providers."""

    CRYPTO = "crypto"
    STOCK = "stock"
    METAL = "metal"

    @property
    def category(self) -> AssetCategory:
        """Display category matching this asset type."""
        return _TYPE_TO_CATEGORY[self]


_TYPE_TO_CATEGORY = {
    AssetType.CRYPTO: AssetCategory.CRYPTOCURRENCY,
    AssetType.STOCK: AssetCategory.STOCKS,
    AssetType.METAL: AssetCategory.PRECIOUS_METAL,
}


class MarketModel(BaseModel):
    """Base model serializing with camelCase aliases for the REST API."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class AssetPrice(MarketModel):
    """Normalized latest price of an asset.

    Attributes:
        symbol: Upper-case ticker symbol
        name: Human-readable asset name when the provider supplies one
        category: Display category
        price: Latest price in USD
        change: Absolute 24h change in USD
        change_percent: 24h change in percent
        price_in_btc: Price expressed in BTC, when known
        price_in_usd: Price in USD (same as price)
        unit: Quotation unit for commodities (e.g. 'troy ounce')
        source: Provider that produced the quote
        last_updated: Upstream timestamp of the quote
    """

    symbol: str
    name: str | None = None
    category: AssetCategory | None = None
    price: float = Field(ge=0.0)
    change: float = 0.0
    change_percent: float = 0.0
    price_in_btc: float | None = Field(
        default=None, ge=0.0, serialization_alias="priceInBTC"
    )
    price_in_usd: float = Field(ge=0.0, serialization_alias="priceInUSD")
    unit: str | None = None
    source: str
    last_updated: datetime

    @field_validator("symbol")
    @classmethod
    def upper_symbol(cls, value: str) -> str:
        """Store symbols upper-cased."""
        return value.upper()


class HistoricalDataPoint(MarketModel):
    """One daily OHLCV observation.

    Only close is guaranteed; providers that report a single price per day
    leave open/high/low empty.
    """

    date: date
    open: float | None = None
    high: float | None = None
    low: float | None = None
    close: float = Field(ge=0.0, serialization_alias="price")
    volume: float | None = Field(default=None, ge=0.0)
    unit: str | None = None


class MarketAsset(MarketModel):
    """Catalog entry for an asset.

    Attributes:
        symbol: Unique upper-case symbol (immutable identity)
        name: Asset name
        category: Display category
        price: Last known USD price
        change_percent: Last known 24h change in percent
        image: Optional logo URL
        last_updated: When the price fields were last refreshed
    """

    symbol: str
    name: str
    category: AssetCategory
    price: float | None = None
    change_percent: float | None = None
    image: str | None = None
    last_updated: datetime | None = None

    @field_validator("symbol")
    @classmethod
    def upper_symbol(cls, value: str) -> str:
        """Store symbols upper-cased."""
        return value.upper()


class SearchResult(MarketModel):
    """One match returned by an asset search."""

    symbol: str
    name: str
    asset_type: AssetType = Field(serialization_alias="type")
    region: str | None = None
    currency: str | None = None


class CryptoMarketOverview(MarketModel):
    """Global crypto market metrics."""

    total_market_cap: float
    total_volume_24h: float = Field(serialization_alias="total24hVolume")
    btc_dominance: float
    eth_dominance: float


class MarketOverview(MarketModel):
    """Aggregated market overview across asset classes."""

    crypto: CryptoMarketOverview | None = None
    metals: dict[str, float] = Field(default_factory=dict)
    top_assets: list[AssetPrice] = Field(default_factory=list)
    last_updated: datetime


class SortField(str, Enum):
    """Fields the asset list can be sorted by."""

    SYMBOL = "symbol"
    NAME = "name"
    PRICE = "price"
    CHANGE_PERCENT = "change_percent"


class SortOrder(str, Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


class ListAssetsOptions(BaseModel):
    """Filtering, sorting and paging options for asset listings."""

    category: AssetCategory | None = None
    search_query: str | None = None
    sort_by: SortField | None = None
    sort_order: SortOrder = SortOrder.ASC
    limit: int = Field(default=100, ge=1, le=250)


class WatchlistEntry(MarketModel):
    """Asset on a user's watchlist. Unique on (user_id, symbol)."""

    user_id: str = Field(min_length=1)
    symbol: str = Field(min_length=1)
    asset_type: AssetType = Field(serialization_alias="type")
    added_at: datetime

    @field_validator("symbol")
    @classmethod
    def upper_symbol(cls, value: str) -> str:
        """Store symbols upper-cased."""
        return value.upper()


class WatchlistItem(MarketModel):
    """Watchlist entry joined with its latest quote, if one is available."""

    symbol: str
    asset_type: AssetType = Field(serialization_alias="type")
    added_at: datetime
    quote: AssetPrice | None = None
