"""CoinGecko fetcher for cryptocurrency prices, history and listings."""

import logging
from datetime import date, datetime, timezone
from typing import Any

from src.data.fetchers.base import BaseFetcher, DataNotAvailableError, utc_now
from src.data.models import (
    AssetCategory,
    AssetPrice,
    AssetType,
    HistoricalDataPoint,
    MarketAsset,
    SearchResult,
)
from src.data.symbols import COINGECKO, normalize_symbol

logger = logging.getLogger(__name__)

# CoinGecko addresses coins by slug rather than ticker
COINGECKO_IDS = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "USDT": "tether",
    "USDC": "usd-coin",
    "BNB": "binancecoin",
    "SOL": "solana",
    "XRP": "ripple",
    "ADA": "cardano",
    "DOGE": "dogecoin",
    "DOT": "polkadot",
    "AVAX": "avalanche-2",
    "MATIC": "matic-network",
    "LTC": "litecoin",
}


def coingecko_id(symbol: str) -> str:
    """Map a ticker to its CoinGecko id, defaulting to the lower-case ticker."""
    cleaned = normalize_symbol(symbol)
    return COINGECKO_IDS.get(cleaned, cleaned.lower())


class CoinGeckoFetcher(BaseFetcher):
    """Fetcher for the CoinGecko v3 API.

    Works without an API key on the public tier. A key, when configured, is
    sent in the ``x-cg-pro-api-key`` header.
    """

    name = COINGECKO
    base_url = "https://api.coingecko.com/api/v3"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["x-cg-pro-api-key"] = self._api_key
        return headers

    def validate_connection(self) -> bool:
        """Validate that the connection to CoinGecko is working."""
        try:
            payload = self._get_json("/ping", headers=self._headers())
            return "gecko_says" in payload
        except Exception:
            return False

    def fetch_price(self, symbol: str) -> AssetPrice:
        """Fetch the latest USD and BTC price of a coin.

        Args:
            symbol: Coin ticker (e.g. 'BTC')

        Returns:
            Normalized AssetPrice

        Raises:
            DataNotAvailableError: If the response lacks a USD price
            FetchError: On network or HTTP errors
        """
        cleaned = normalize_symbol(symbol)
        payload = self._get_json(
            f"/coins/{coingecko_id(cleaned)}",
            params={
                "localization": "false",
                "tickers": "false",
                "market_data": "true",
                "community_data": "false",
                "developer_data": "false",
                "sparkline": "false",
            },
            headers=self._headers(),
        )

        payload = self._as_dict(payload, "coin")
        market_data = self._as_dict(payload.get("market_data") or {}, "market_data")
        current_price = self._as_dict(
            market_data.get("current_price") or {}, "market_data.current_price"
        )
        price = self._to_float(
            current_price.get("usd"), "market_data.current_price.usd"
        )
        price_in_btc = current_price.get("btc")

        return AssetPrice(
            symbol=cleaned,
            name=payload.get("name"),
            category=AssetCategory.CRYPTOCURRENCY,
            price=price,
            change=float(market_data.get("price_change_24h") or 0.0),
            change_percent=float(market_data.get("price_change_percentage_24h") or 0.0),
            price_in_btc=float(price_in_btc) if price_in_btc is not None else None,
            price_in_usd=price,
            source=self.name,
            last_updated=market_data.get("last_updated") or utc_now(),
        )

    def fetch_history(self, symbol: str, days: int) -> list[HistoricalDataPoint]:
        """Fetch daily closing prices and volumes.

        CoinGecko returns intraday granularity for short ranges, so points are
        collapsed to the last observation of each day.

        Args:
            symbol: Coin ticker
            days: Number of days back from today

        Returns:
            Data points ordered oldest first

        Raises:
            DataNotAvailableError: If the response has no price series
        """
        params: dict[str, Any] = {"vs_currency": "usd", "days": days}
        if days > 90:
            params["interval"] = "daily"

        payload = self._get_json(
            f"/coins/{coingecko_id(symbol)}/market_chart",
            params=params,
            headers=self._headers(),
        )

        payload = self._as_dict(payload, "market_chart")
        prices = self._as_list(payload.get("prices") or [], "prices")
        if not prices:
            raise DataNotAvailableError(
                f"No price series for {symbol}", source=self.name
            )
        volumes = {
            int(ts): vol
            for ts, vol in self._as_list(
                payload.get("total_volumes") or [], "total_volumes"
            )
        }

        by_day: dict[date, HistoricalDataPoint] = {}
        for ts, price in prices:
            day = datetime.fromtimestamp(ts / 1000, tz=timezone.utc).date()
            by_day[day] = HistoricalDataPoint(
                date=day, close=float(price), volume=volumes.get(int(ts))
            )

        return [by_day[day] for day in sorted(by_day)]

    def search(self, query: str) -> list[SearchResult]:
        """Search coins by name or ticker."""
        payload = self._as_dict(
            self._get_json(
                "/search", params={"query": query}, headers=self._headers()
            ),
            "search",
        )
        coins = self._as_list(payload.get("coins") or [], "coins")
        return [
            SearchResult(
                symbol=coin["symbol"].upper(),
                name=coin["name"],
                asset_type=AssetType.CRYPTO,
            )
            for coin in coins
            if isinstance(coin, dict) and coin.get("symbol") and coin.get("name")
        ]

    def fetch_top_assets(self, limit: int = 100) -> list[MarketAsset]:
        """Fetch coins ordered by market capitalization.

        Args:
            limit: Number of coins to return (CoinGecko caps pages at 250)
        """
        payload = self._get_json(
            "/coins/markets",
            params={
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": min(limit, 250),
                "page": 1,
                "sparkline": "false",
            },
            headers=self._headers(),
        )
        payload = self._as_list(payload, "coins/markets")

        return [
            MarketAsset(
                symbol=coin["symbol"],
                name=coin["name"],
                category=AssetCategory.CRYPTOCURRENCY,
                price=coin.get("current_price"),
                change_percent=coin.get("price_change_percentage_24h"),
                image=coin.get("image"),
                last_updated=coin.get("last_updated"),
            )
            for coin in payload
        ]
