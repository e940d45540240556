"""Shared fixtures for market data tests.

Upstream HTTP is never contacted: adapters get a mocked requests session and
the aggregator is wired with in-process stub providers.
"""

import tempfile
from collections.abc import Callable, Iterator
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from src.data.cache import TTLCache
from src.data.fetchers.base import FetchError
from src.data.models import (
    AssetCategory,
    AssetPrice,
    CryptoMarketOverview,
    HistoricalDataPoint,
    MarketAsset,
    SearchResult,
)
from src.data.storage.duckdb import DuckDBStorage
from src.data.symbols import (
    ALPHA_VANTAGE,
    COINGECKO,
    COINMARKETCAP,
    METALS_API,
    classify_symbol,
)

FIXED_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubProvider:
    """In-process provider recording every call.

    Prices are looked up in ``prices``; symbols missing from it (or every
    symbol when ``error`` is set) raise FetchError.
    """

    def __init__(
        self,
        name: str,
        prices: dict[str, float] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self.prices = prices or {}
        self.error = error
        self.history: list[HistoricalDataPoint] | None = None
        self.search_results: list[SearchResult] | None = None
        self.top_assets: list[MarketAsset] | None = None
        self.global_metrics: CryptoMarketOverview | None = None
        self.calls: list[tuple[str, Any]] = []
        self.closed = False

    def _check(self, method: str, arg: Any = None) -> None:
        self.calls.append((method, arg))
        if self.error is not None:
            raise self.error

    def calls_to(self, method: str) -> list[Any]:
        return [arg for name, arg in self.calls if name == method]

    def fetch_price(self, symbol: str) -> AssetPrice:
        self._check("fetch_price", symbol)
        if symbol not in self.prices:
            raise FetchError(f"Unknown symbol {symbol}", source=self.name)
        return make_quote(symbol, self.prices[symbol], source=self.name)

    def fetch_prices(self, symbols: list[str]) -> dict[str, float]:
        self._check("fetch_prices", tuple(symbols))
        return {s: self.prices[s] for s in symbols if s in self.prices}

    def fetch_history(self, symbol: str, days: int) -> list[HistoricalDataPoint]:
        self._check("fetch_history", (symbol, days))
        if self.history is None:
            raise FetchError("No history", source=self.name)
        return self.history

    def search(self, query: str) -> list[SearchResult]:
        self._check("search", query)
        if self.search_results is None:
            raise FetchError("Search unavailable", source=self.name)
        return self.search_results

    def fetch_top_assets(self, limit: int = 100) -> list[MarketAsset]:
        self._check("fetch_top_assets", limit)
        if self.top_assets is None:
            raise FetchError("Markets unavailable", source=self.name)
        return self.top_assets

    def fetch_global_metrics(self) -> CryptoMarketOverview:
        self._check("fetch_global_metrics")
        if self.global_metrics is None:
            raise FetchError("Global metrics unavailable", source=self.name)
        return self.global_metrics

    def close(self) -> None:
        self.closed = True


def make_quote(symbol: str, price: float, source: str = "Test") -> AssetPrice:
    """Build a normalized quote for tests."""
    return AssetPrice(
        symbol=symbol,
        category=classify_symbol(symbol).category,
        price=price,
        price_in_usd=price,
        source=source,
        last_updated=FIXED_TIME,
    )


def make_history(
    closes: list[float], start: date = date(2024, 1, 1)
) -> list[HistoricalDataPoint]:
    """Build consecutive daily points with the given closes."""
    return [
        HistoricalDataPoint(date=date.fromordinal(start.toordinal() + i), close=c)
        for i, c in enumerate(closes)
    ]


def make_response(payload: Any, status_code: int = 200) -> MagicMock:
    """Build a mocked requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


def make_session(*payloads: Any, status_code: int = 200) -> MagicMock:
    """Build a mocked requests.Session answering GETs with the payloads in order."""
    session = MagicMock()
    responses = [make_response(p, status_code) for p in payloads]
    if len(responses) == 1:
        session.get.return_value = responses[0]
    else:
        session.get.side_effect = responses
    return session


@pytest.fixture
def clock() -> FakeClock:
    """Fake monotonic clock."""
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> TTLCache:
    """Cache driven by the fake clock."""
    return TTLCache(clock=clock)


@pytest.fixture
def providers() -> dict[str, StubProvider]:
    """One stub per upstream with a few known prices."""
    return {
        COINGECKO: StubProvider(
            COINGECKO, prices={"BTC": 65000.0, "ETH": 3500.0, "SOL": 150.0}
        ),
        COINMARKETCAP: StubProvider(
            COINMARKETCAP, prices={"BTC": 64900.0, "ETH": 3490.0, "SOL": 149.0}
        ),
        ALPHA_VANTAGE: StubProvider(
            ALPHA_VANTAGE, prices={"AAPL": 180.0, "MSFT": 410.0, "GOOGL": 140.0}
        ),
        METALS_API: StubProvider(METALS_API, prices={"XAU": 2000.0, "XAG": 25.0}),
    }


@pytest.fixture
def temp_db() -> Iterator[str]:
    """Temporary database file path (not the file itself)."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield str(Path(tmpdir) / "test_market_data.duckdb")


@pytest.fixture
def storage(temp_db: str) -> Iterator[DuckDBStorage]:
    """DuckDB storage on a temporary file."""
    db = DuckDBStorage(temp_db)
    yield db
    db.close()


@pytest.fixture
def quote_factory() -> Callable[..., AssetPrice]:
    """Factory for normalized quotes."""
    return make_quote


@pytest.fixture
def history_factory() -> Callable[..., list[HistoricalDataPoint]]:
    """Factory for daily history."""
    return make_history


@pytest.fixture
def session_factory() -> Callable[..., MagicMock]:
    """Factory for mocked HTTP sessions."""
    return make_session


@pytest.fixture
def stub_factory() -> Callable[..., StubProvider]:
    """Factory for stub providers."""
    return StubProvider


@pytest.fixture
def market_asset() -> MarketAsset:
    """A crypto listing entry."""
    return MarketAsset(
        symbol="BTC",
        name="Bitcoin",
        category=AssetCategory.CRYPTOCURRENCY,
        price=65000.0,
        change_percent=1.5,
    )
