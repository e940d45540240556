"""CoinMarketCap fetcher for cryptocurrency quotes and global metrics."""

import logging
from datetime import date, timedelta
from typing import Any

from src.data.fetchers.base import (
    BaseFetcher,
    DataNotAvailableError,
    FetchError,
    utc_now,
)
from src.data.models import (
    AssetCategory,
    AssetPrice,
    AssetType,
    CryptoMarketOverview,
    HistoricalDataPoint,
    SearchResult,
)
from src.data.symbols import COINMARKETCAP, normalize_symbol

logger = logging.getLogger(__name__)


def change_from_percent(price: float, percent: float) -> float:
    """Absolute 24h change implied by the current price and percent change."""
    if percent <= -100.0:
        return -price
    return price * percent / (100.0 + percent)


class CoinMarketCapFetcher(BaseFetcher):
    """Fetcher for the CoinMarketCap pro API.

    Requires an API key (COINMARKETCAP_API_KEY). Without one every call
    raises FetchError, which lets the aggregator fall back to CoinGecko.
    """

    name = COINMARKETCAP
    base_url = "https://pro-api.coinmarketcap.com"

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "X-CMC_PRO_API_KEY": self._require_api_key(),
        }

    def _get_data(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET an endpoint and unwrap its ``data`` member.

        Raises:
            FetchError: If the status block reports an error
            DataNotAvailableError: If the payload has no data
        """
        payload = self._as_dict(
            self._get_json(path, params=params, headers=self._headers()), path
        )
        status = self._as_dict(payload.get("status") or {}, "status")
        if status.get("error_code"):
            raise FetchError(
                status.get("error_message") or f"Error code {status['error_code']}",
                source=self.name,
            )
        data = payload.get("data")
        if not data:
            raise DataNotAvailableError(f"Empty data from {path}", source=self.name)
        return data

    @staticmethod
    def _first(node: Any) -> Any:
        # v2 endpoints return a list per symbol, v1 a single object
        if isinstance(node, list):
            return node[0] if node else None
        return node

    def validate_connection(self) -> bool:
        """Validate the API key against the key info endpoint."""
        try:
            self._get_data("/v1/key/info")
            return True
        except Exception:
            return False

    def fetch_price(self, symbol: str) -> AssetPrice:
        """Fetch the latest USD quote for a coin.

        Args:
            symbol: Coin ticker (e.g. 'SOL')

        Returns:
            Normalized AssetPrice (price_in_btc is not quoted by this endpoint)

        Raises:
            DataNotAvailableError: If the symbol or its USD quote is missing
            FetchError: On network/HTTP/API errors
        """
        cleaned = normalize_symbol(symbol)
        data = self._get_data(
            "/v2/cryptocurrency/quotes/latest",
            params={"symbol": cleaned, "convert": "USD"},
        )
        data = self._as_dict(data, "data")

        coin = self._first(data.get(cleaned))
        if not coin:
            raise DataNotAvailableError(
                f"Cryptocurrency not found: {cleaned}", source=self.name
            )

        coin = self._as_dict(coin, f"data.{cleaned}")
        quote = self._as_dict(coin.get("quote") or {}, "quote")
        quote = self._as_dict(quote.get("USD") or {}, "quote.USD")
        price = self._to_float(quote.get("price"), "quote.USD.price")
        percent = float(quote.get("percent_change_24h") or 0.0)

        return AssetPrice(
            symbol=cleaned,
            name=coin.get("name"),
            category=AssetCategory.CRYPTOCURRENCY,
            price=price,
            change=change_from_percent(price, percent),
            change_percent=percent,
            price_in_usd=price,
            source=self.name,
            last_updated=(
                quote.get("last_updated") or coin.get("last_updated") or utc_now()
            ),
        )

    def fetch_history(self, symbol: str, days: int) -> list[HistoricalDataPoint]:
        """Fetch daily historical quotes.

        Args:
            symbol: Coin ticker
            days: Number of days back from today

        Returns:
            Data points ordered oldest first
        """
        cleaned = normalize_symbol(symbol)
        end = date.today()
        start = end - timedelta(days=days)
        self._validate_date_range(start, end)

        data = self._get_data(
            "/v2/cryptocurrency/quotes/historical",
            params={
                "symbol": cleaned,
                "time_start": start.isoformat(),
                "time_end": end.isoformat(),
                "interval": "daily",
                "convert": "USD",
            },
        )

        data = self._as_dict(data, "data")
        node = self._first(data.get(cleaned)) if cleaned in data else data
        node = self._as_dict(node or {}, f"data.{cleaned}")
        quotes = self._as_list(node.get("quotes") or [], "quotes")
        if not quotes:
            raise DataNotAvailableError(
                f"No historical quotes for {cleaned}", source=self.name
            )

        points = []
        for item in quotes:
            item = self._as_dict(item, "quotes[]")
            quote = self._as_dict(item.get("quote") or {}, "quotes[].quote")
            usd = self._as_dict(quote.get("USD") or {}, "quotes[].quote.USD")
            if usd.get("price") is None:
                continue
            points.append(
                HistoricalDataPoint(
                    date=str(item["timestamp"])[:10],
                    close=float(usd["price"]),
                    volume=usd.get("volume_24h"),
                )
            )
        return sorted(points, key=lambda p: p.date)

    def search(self, query: str) -> list[SearchResult]:
        """Look up coins whose ticker matches the query."""
        data = self._get_data(
            "/v1/cryptocurrency/map", params={"symbol": normalize_symbol(query)}
        )
        return [
            SearchResult(
                symbol=coin["symbol"], name=coin["name"], asset_type=AssetType.CRYPTO
            )
            for coin in self._as_list(data, "data")
        ]

    def fetch_global_metrics(self) -> CryptoMarketOverview:
        """Fetch total market capitalization, volume and dominance figures."""
        data = self._as_dict(self._get_data("/v1/global-metrics/quotes/latest"), "data")
        quote = self._as_dict(data.get("quote") or {}, "quote")
        usd = self._as_dict(quote.get("USD") or {}, "quote.USD")

        return CryptoMarketOverview(
            total_market_cap=self._to_float(
                usd.get("total_market_cap"), "quote.USD.total_market_cap"
            ),
            total_volume_24h=self._to_float(
                usd.get("total_volume_24h"), "quote.USD.total_volume_24h"
            ),
            btc_dominance=self._to_float(data.get("btc_dominance"), "btc_dominance"),
            eth_dominance=self._to_float(data.get("eth_dominance"), "eth_dominance"),
        )
