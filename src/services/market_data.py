"""Market data aggregator.

MarketDataService routes each request to the upstream providers preferred
for the asset class, falls back to the next provider when one fails, and
keeps results in a TTL cache. Stored snapshots and history are written
through to DuckDB when a storage backend is configured.
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from src.config.logging import log_context
from src.config.settings import CacheTTLs, Settings
from src.data.cache import TTLCache, make_cache_key
from src.data.fetchers import (
    AlphaVantageFetcher,
    CoinGeckoFetcher,
    CoinMarketCapFetcher,
    FetchError,
    HistoryProvider,
    MetalsAPIFetcher,
    MockFetcher,
    PriceProvider,
    SearchProvider,
)
from src.data.models import (
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
)
from src.data.storage.duckdb import DuckDBStorage
from src.data.symbols import (
    ALPHA_VANTAGE,
    COINGECKO,
    COINMARKETCAP,
    METAL_SYMBOLS,
    METALS_API,
    POPULAR_SYMBOLS,
    history_provider_order,
    normalize_symbol,
    provider_order,
    search_metals,
    static_catalog,
)
from src.errors import AppError

logger = logging.getLogger(__name__)

MAX_HISTORY_DAYS = 3650
TOP_ASSETS_LIMIT = 100
SNAPSHOT_SOURCE = "snapshot"
BTC_SYMBOL = "BTC"

# Malformed payloads can surface as validation or lookup errors from the
# adapters; all of them count as a provider failure.
PROVIDER_ERRORS = (FetchError, ValueError, KeyError, TypeError, AttributeError)


def _clean_symbol(symbol: str) -> str:
    try:
        return normalize_symbol(symbol)
    except ValueError as e:
        raise AppError.bad_request(str(e)) from e


class MarketDataService:
    """Aggregates prices, history, search and listings across providers.

    Providers are looked up by name (see ``src.data.symbols``); a name
    missing from the registry, or an adapter lacking the capability an
    operation needs, is skipped like a failed provider.
    """

    def __init__(
        self,
        providers: Mapping[str, PriceProvider],
        cache: TTLCache | None = None,
        ttls: CacheTTLs | None = None,
        storage: DuckDBStorage | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            providers: Provider name to adapter instance
            cache: Cache to use (a private in-memory cache if omitted)
            ttls: Cache lifetimes per operation
            storage: Optional persistence for snapshots and history
        """
        self._providers = dict(providers)
        self._cache = cache if cache is not None else TTLCache()
        self._ttls = ttls or CacheTTLs()
        self._storage = storage

    @property
    def cache(self) -> TTLCache:
        """The cache in front of upstream providers."""
        return self._cache

    @property
    def storage(self) -> DuckDBStorage | None:
        """The configured storage backend, if any."""
        return self._storage

    def _provider(self, name: str, capability: type = PriceProvider) -> Any | None:
        provider = self._providers.get(name)
        if provider is None:
            logger.debug(f"Provider {name} is not configured")
            return None
        if not isinstance(provider, capability):
            logger.debug(f"Provider {name} does not support {capability.__name__}")
            return None
        return provider

    # =========================================================================
    # Prices
    # =========================================================================

    def get_asset_price(self, symbol: str) -> AssetPrice | None:
        """Get the latest price of an asset.

        Providers are tried in preference order; each is called at most
        once. When every provider fails the last stored snapshot is returned
        (marked with source 'snapshot'), or None when there is none.

        Args:
            symbol: Asset symbol, e.g. 'BTC', 'AAPL', 'XAU' or 'BTC:IND'

        Returns:
            Normalized price, or None if it could not be obtained

        Raises:
            AppError: 400 if the symbol is empty
        """
        cleaned = _clean_symbol(symbol)
        quote = self._cache.get_or_set(
            make_cache_key("price", cleaned),
            lambda: self._fetch_price(cleaned),
            self._ttls.quote,
        )
        if quote is not None:
            return quote
        return self._load_snapshot(cleaned)

    def _fetch_price(self, symbol: str) -> AssetPrice | None:
        for name in provider_order(symbol):
            provider = self._provider(name)
            if provider is None:
                continue
            try:
                quote = provider.fetch_price(symbol)
            except PROVIDER_ERRORS as e:
                logger.warning(
                    f"{name} failed to price {symbol}: {e}",
                    extra=log_context(provider=name, symbol=symbol, operation="price"),
                )
                continue

            logger.debug(f"Priced {symbol} via {name}")
            if quote.price_in_btc is None:
                quote = self._with_btc_price(quote)
            self._store_snapshot(quote)
            return quote

        logger.error(
            f"All providers failed to price {symbol}",
            extra=log_context(symbol=symbol, operation="price"),
        )
        return None

    def _with_btc_price(self, quote: AssetPrice) -> AssetPrice:
        """Fill in price_in_btc from the BTC/USD quote.

        Left empty when no BTC price is available.
        """
        if quote.symbol == BTC_SYMBOL:
            return quote.model_copy(update={"price_in_btc": 1.0})

        btc = self.get_asset_price(BTC_SYMBOL)
        if btc is None or btc.price <= 0:
            logger.debug(f"No BTC reference price for {quote.symbol}")
            return quote
        return quote.model_copy(update={"price_in_btc": quote.price / btc.price})

    def _store_snapshot(self, quote: AssetPrice) -> None:
        if self._storage is None:
            return
        try:
            self._storage.upsert_asset(quote)
        except Exception as e:
            logger.error(f"Failed to store snapshot for {quote.symbol}: {e}")

    def _load_snapshot(self, symbol: str) -> AssetPrice | None:
        if self._storage is None:
            return None
        snapshot = self._storage.get_asset(symbol)
        if snapshot is None:
            return None
        logger.warning(f"Serving stored snapshot for {symbol}")
        return snapshot.model_copy(update={"source": SNAPSHOT_SOURCE})

    def get_popular_assets(self, limit: int = 10) -> list[AssetPrice]:
        """Prices for the popular asset list, skipping assets that fail.

        Args:
            limit: Maximum number of prices to return

        Raises:
            AppError: 400 if limit is not positive
        """
        if limit < 1:
            raise AppError.bad_request("limit must be a positive integer")

        quotes = []
        for symbol in POPULAR_SYMBOLS:
            if len(quotes) >= limit:
                break
            quote = self.get_asset_price(symbol)
            if quote is not None:
                quotes.append(quote)
        return quotes

    # =========================================================================
    # History
    # =========================================================================

    def get_historical_data(
        self, symbol: str, days: int = 30
    ) -> list[HistoricalDataPoint]:
        """Get daily history for an asset.

        Crypto history falls back from CoinGecko to CoinMarketCap. When every
        provider fails an empty list is returned and nothing is cached.

        Args:
            symbol: Asset symbol
            days: Number of days, 1 to 3650

        Returns:
            Data points ordered oldest first

        Raises:
            AppError: 400 if days is out of range or the symbol is empty
        """
        if not 1 <= days <= MAX_HISTORY_DAYS:
            raise AppError.bad_request(
                f"days must be between 1 and {MAX_HISTORY_DAYS}",
                details={"days": days},
            )
        cleaned = _clean_symbol(symbol)

        points = self._cache.get_or_set(
            make_cache_key("historical", cleaned, days=days),
            lambda: self._fetch_history(cleaned, days),
            self._ttls.historical,
        )
        return points if points is not None else []

    def _fetch_history(
        self, symbol: str, days: int
    ) -> list[HistoricalDataPoint] | None:
        for name in history_provider_order(symbol):
            provider = self._provider(name, HistoryProvider)
            if provider is None:
                continue
            try:
                points = provider.fetch_history(symbol, days)
            except PROVIDER_ERRORS as e:
                logger.warning(
                    f"{name} failed to fetch history for {symbol}: {e}",
                    extra=log_context(
                        provider=name, symbol=symbol, operation="historical"
                    ),
                )
                continue

            if self._storage is not None:
                try:
                    self._storage.insert_historical(symbol, points)
                except Exception as e:
                    logger.error(f"Failed to store history for {symbol}: {e}")
            return points

        logger.error(f"All providers failed to fetch history for {symbol}")
        return None

    # =========================================================================
    # Search
    # =========================================================================

    def search_assets(
        self, query: str, asset_type: AssetType | None = None
    ) -> list[SearchResult]:
        """Search assets by name or symbol.

        Without a type, crypto, stock and metal matches are merged in that
        order. A source that fails contributes no results; such partial
        results are returned but not cached.

        Args:
            query: Free-text query
            asset_type: Restrict the search to one asset class

        Raises:
            AppError: 400 if the query is empty
        """
        if not query or not query.strip():
            raise AppError.bad_request("Search query is required")
        query = query.strip()

        key = make_cache_key(
            "search",
            query,
            type=asset_type.value if asset_type else None,
        )
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        results: list[SearchResult] = []
        complete = True
        if asset_type in (None, AssetType.CRYPTO):
            found = self._search_with([COINGECKO, COINMARKETCAP], query)
            complete = complete and found is not None
            results.extend(found or [])
        if asset_type in (None, AssetType.STOCK):
            found = self._search_with([ALPHA_VANTAGE], query)
            complete = complete and found is not None
            results.extend(found or [])
        if asset_type in (None, AssetType.METAL):
            results.extend(search_metals(query))

        seen: set[tuple[str, AssetType]] = set()
        unique = []
        for result in results:
            identity = (result.symbol, result.asset_type)
            if identity not in seen:
                seen.add(identity)
                unique.append(result)

        if complete:
            self._cache.set(key, unique, self._ttls.search)
        return unique

    def _search_with(
        self, provider_names: list[str], query: str
    ) -> list[SearchResult] | None:
        for name in provider_names:
            provider = self._provider(name, SearchProvider)
            if provider is None:
                continue
            try:
                return provider.search(query)
            except PROVIDER_ERRORS as e:
                logger.warning(
                    f"{name} search failed for {query!r}: {e}",
                    extra=log_context(provider=name, operation="search"),
                )
        return None

    # =========================================================================
    # Overview and listings
    # =========================================================================

    def get_market_overview(self) -> MarketOverview:
        """Global crypto metrics, metal prices and popular asset prices.

        Each section degrades independently: a failed section is left empty.
        Only a complete overview is cached.
        """
        key = make_cache_key("overview")
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        overview = MarketOverview(
            crypto=self._fetch_global_metrics(),
            metals=self._fetch_metal_prices(),
            top_assets=self.get_popular_assets(),
            last_updated=datetime.now(timezone.utc),
        )

        if overview.crypto is not None and overview.metals and overview.top_assets:
            self._cache.set(key, overview, self._ttls.overview)
        return overview

    def _fetch_global_metrics(self) -> CryptoMarketOverview | None:
        provider = self._provider(COINMARKETCAP)
        if provider is None:
            return None
        try:
            return provider.fetch_global_metrics()
        except PROVIDER_ERRORS as e:
            logger.warning(f"{COINMARKETCAP} global metrics unavailable: {e}")
            return None

    def _fetch_metal_prices(self) -> dict[str, float]:
        key = make_cache_key("stats", "metals")
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        provider = self._provider(METALS_API)
        if provider is None:
            return {}
        try:
            prices = provider.fetch_prices(sorted(METAL_SYMBOLS))
        except PROVIDER_ERRORS as e:
            logger.warning(f"{METALS_API} metal prices unavailable: {e}")
            return {}

        self._cache.set(key, prices, self._ttls.stats)
        return prices

    def list_assets(
        self, options: ListAssetsOptions | None = None
    ) -> list[MarketAsset]:
        """List known assets with filtering, sorting and a result limit.

        The catalog is the CoinGecko top list plus the static stock and
        metal catalog. If the upstream list is unavailable only the static
        catalog is listed.

        Args:
            options: Filter, sort and limit options (defaults if omitted)

        Returns:
            Matching assets
        """
        options = options or ListAssetsOptions()
        assets = self._catalog()

        if options.category is not None:
            assets = [a for a in assets if a.category == options.category]
        if options.search_query:
            needle = options.search_query.strip().lower()
            assets = [
                a
                for a in assets
                if needle in a.symbol.lower() or needle in a.name.lower()
            ]
        if options.sort_by is not None:
            assets = _sort_assets(assets, options.sort_by, options.sort_order)

        return assets[: options.limit]

    def _catalog(self) -> list[MarketAsset]:
        top = self._cache.get_or_set(
            make_cache_key("assets", limit=TOP_ASSETS_LIMIT),
            self._fetch_top_assets,
            self._ttls.assets,
        )

        static = static_catalog()
        if self._storage is not None:
            snapshots = {a.symbol: a for a in self._storage.list_assets()}
            static = [
                a.model_copy(
                    update={
                        "price": snapshots[a.symbol].price,
                        "change_percent": snapshots[a.symbol].change_percent,
                        "last_updated": snapshots[a.symbol].last_updated,
                    }
                )
                if a.symbol in snapshots
                else a
                for a in static
            ]

        listed = {a.symbol for a in top or []}
        return list(top or []) + [a for a in static if a.symbol not in listed]

    def _fetch_top_assets(self) -> list[MarketAsset] | None:
        provider = self._provider(COINGECKO)
        if provider is None:
            return None
        try:
            return provider.fetch_top_assets(limit=TOP_ASSETS_LIMIT)
        except PROVIDER_ERRORS as e:
            logger.warning(f"{COINGECKO} asset list unavailable: {e}")
            return None

    def close(self) -> None:
        """Close provider sessions and the storage connection."""
        for provider in {id(p): p for p in self._providers.values()}.values():
            provider.close()
        if self._storage is not None:
            self._storage.close()


def _sort_assets(
    assets: list[MarketAsset], sort_by: SortField, sort_order: SortOrder
) -> list[MarketAsset]:
    """Sort assets by a field; assets without a value always come last."""

    def value(asset: MarketAsset) -> Any:
        field = getattr(asset, sort_by.value)
        return field.lower() if isinstance(field, str) else field

    present = [a for a in assets if value(a) is not None]
    missing = [a for a in assets if value(a) is None]
    present.sort(key=value, reverse=sort_order == SortOrder.DESC)
    return present + missing


def create_market_data_service(
    settings: Settings,
    cache: TTLCache | None = None,
    storage: DuckDBStorage | None = None,
) -> MarketDataService:
    """Build a MarketDataService wired from settings.

    With ``use_mock_data`` every provider slot is served by the offline mock.
    Adapters without a configured key are still registered; they fail on use
    and the aggregator falls back.

    Args:
        settings: Service settings
        cache: Cache to use (a new one with default clock if omitted)
        storage: Storage to use; opened from settings.database_path if omitted

    Returns:
        Configured service
    """
    if settings.use_mock_data:
        logger.info("Using offline mock market data")
        mock = MockFetcher()
        providers: dict[str, PriceProvider] = {
            COINGECKO: mock,
            COINMARKETCAP: mock,
            ALPHA_VANTAGE: mock,
            METALS_API: mock,
        }
    else:
        timeout = settings.request_timeout
        providers = {
            COINGECKO: CoinGeckoFetcher(settings.coingecko_api_key, timeout=timeout),
            COINMARKETCAP: CoinMarketCapFetcher(
                settings.coinmarketcap_api_key, timeout=timeout
            ),
            ALPHA_VANTAGE: AlphaVantageFetcher(
                settings.alpha_vantage_api_key, timeout=timeout
            ),
            METALS_API: MetalsAPIFetcher(settings.metals_api_key, timeout=timeout),
        }
        missing = [
            name
            for name, key in (
                (COINMARKETCAP, settings.coinmarketcap_api_key),
                (ALPHA_VANTAGE, settings.alpha_vantage_api_key),
                (METALS_API, settings.metals_api_key),
            )
            if not key
        ]
        if missing:
            logger.warning(f"No API key configured for: {', '.join(missing)}")

    if storage is None and settings.database_path:
        storage = DuckDBStorage(settings.database_path)

    return MarketDataService(
        providers,
        cache=cache,
        ttls=settings.cache_ttl,
        storage=storage,
    )
