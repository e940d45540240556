"""Offline provider serving deterministic synthetic market data.

Used when USE_MOCK_DATA is set, in demos and in tests. Values are derived
from a per-symbol seeded generator, so the same symbol always yields the same
numbers within a day.
"""

import logging
import random
import zlib
from datetime import date, datetime, timedelta, timezone

from src.data.models import (
    AssetPrice,
    AssetType,
    CryptoMarketOverview,
    HistoricalDataPoint,
    MarketAsset,
    SearchResult,
)
from src.data.symbols import (
    CRYPTO_SYMBOLS,
    METAL_NAMES,
    MOCK,
    STOCK_CATALOG,
    classify_symbol,
    normalize_symbol,
)

logger = logging.getLogger(__name__)

BASE_PRICES = {
    "BTC": 62500.0,
    "ETH": 3250.0,
    "USDT": 1.0,
    "USDC": 1.0,
    "BNB": 580.0,
    "SOL": 145.0,
    "XRP": 0.52,
    "ADA": 0.45,
    "DOGE": 0.12,
    "DOT": 6.8,
    "AVAX": 28.0,
    "MATIC": 0.7,
    "LTC": 80.0,
    "AAPL": 177.5,
    "MSFT": 415.0,
    "GOOGL": 132.5,
    "AMZN": 180.0,
    "NVDA": 880.0,
    "TSLA": 175.0,
    "META": 490.0,
    "XAU": 2000.0,
    "XAG": 25.0,
    "XPT": 950.0,
    "XPD": 1000.0,
}

CRYPTO_NAMES = {
    "BTC": "Bitcoin",
    "ETH": "Ethereum",
    "USDT": "Tether",
    "USDC": "USD Coin",
    "BNB": "BNB",
    "SOL": "Solana",
    "XRP": "XRP",
    "ADA": "Cardano",
    "DOGE": "Dogecoin",
    "DOT": "Polkadot",
    "AVAX": "Avalanche",
    "MATIC": "Polygon",
    "LTC": "Litecoin",
}


def _rng(symbol: str, salt: str = "") -> random.Random:
    return random.Random(zlib.crc32(f"{symbol}:{salt}".encode()))


def _asset_name(symbol: str) -> str:
    return (
        CRYPTO_NAMES.get(symbol)
        or STOCK_CATALOG.get(symbol)
        or METAL_NAMES.get(symbol)
        or symbol
    )


class MockFetcher:
    """Provider implementing every upstream capability without network access."""

    name = MOCK

    def __init__(self, today: date | None = None) -> None:
        """Initialize the mock provider.

        Args:
            today: Date used as the end of generated histories (default: today)
        """
        self._today = today

    def _base_price(self, symbol: str) -> float:
        if symbol in BASE_PRICES:
            return BASE_PRICES[symbol]
        return round(_rng(symbol, "base").uniform(10.0, 500.0), 2)

    def validate_connection(self) -> bool:
        """Always available."""
        return True

    def close(self) -> None:
        """Nothing to release."""

    def fetch_price(self, symbol: str) -> AssetPrice:
        """Generate a latest price within +/-5% of the symbol's base price."""
        cleaned = normalize_symbol(symbol)
        asset_type = classify_symbol(cleaned)
        today = self._today or date.today()
        rng = _rng(cleaned, today.isoformat())

        price = self._base_price(cleaned) * (1 + rng.uniform(-0.05, 0.05))
        change_percent = rng.uniform(-5.0, 5.0)
        change = price * change_percent / (100.0 + change_percent)

        return AssetPrice(
            symbol=cleaned,
            name=_asset_name(cleaned),
            category=asset_type.category,
            price=price,
            change=change,
            change_percent=change_percent,
            price_in_btc=price / BASE_PRICES["BTC"],
            price_in_usd=price,
            unit="troy ounce" if asset_type == AssetType.METAL else None,
            source=self.name,
            last_updated=datetime.now(timezone.utc),
        )

    def fetch_prices(self, symbols: list[str]) -> dict[str, float]:
        """Latest prices for several symbols."""
        return {normalize_symbol(s): self.fetch_price(s).price for s in symbols}

    def fetch_history(self, symbol: str, days: int) -> list[HistoricalDataPoint]:
        """Generate a random walk of ``days`` daily bars ending today."""
        cleaned = normalize_symbol(symbol)
        end = self._today or date.today()
        rng = _rng(cleaned, "history")
        unit = "troy ounce" if classify_symbol(cleaned) == AssetType.METAL else None

        close = self._base_price(cleaned)
        points = []
        for offset in range(days - 1, -1, -1):
            open_ = close
            close = max(open_ * (1 + rng.uniform(-0.02, 0.02)), 0.0001)
            points.append(
                HistoricalDataPoint(
                    date=end - timedelta(days=offset),
                    open=open_,
                    high=max(open_, close) * (1 + rng.uniform(0, 0.01)),
                    low=min(open_, close) * (1 - rng.uniform(0, 0.01)),
                    close=close,
                    volume=float(rng.randint(100_000, 1_100_000)),
                    unit=unit,
                )
            )
        return points

    def search(self, query: str) -> list[SearchResult]:
        """Match known crypto and stock symbols or names."""
        needle = query.strip().lower()
        results = [
            SearchResult(symbol=s, name=n, asset_type=AssetType.CRYPTO)
            for s, n in CRYPTO_NAMES.items()
            if needle in s.lower() or needle in n.lower()
        ]
        results.extend(
            SearchResult(
                symbol=s,
                name=n,
                asset_type=AssetType.STOCK,
                region="United States",
                currency="USD",
            )
            for s, n in STOCK_CATALOG.items()
            if needle in s.lower() or needle in n.lower()
        )
        return results

    def fetch_top_assets(self, limit: int = 100) -> list[MarketAsset]:
        """Known cryptocurrencies ordered by base price."""
        ranked = sorted(CRYPTO_SYMBOLS, key=lambda s: -BASE_PRICES[s])[:limit]
        assets = []
        for symbol in ranked:
            quote = self.fetch_price(symbol)
            assets.append(
                MarketAsset(
                    symbol=symbol,
                    name=quote.name or symbol,
                    category=quote.category,
                    price=quote.price,
                    change_percent=quote.change_percent,
                    last_updated=quote.last_updated,
                )
            )
        return assets

    def fetch_global_metrics(self) -> CryptoMarketOverview:
        """Fixed global crypto market figures."""
        return CryptoMarketOverview(
            total_market_cap=2.4e12,
            total_volume_24h=9.5e10,
            btc_dominance=52.5,
            eth_dominance=16.8,
        )
