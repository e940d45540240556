"""Alpha Vantage fetcher for stock quotes, daily history and symbol search."""

import logging
from typing import Any

from src.data.fetchers.base import (
    BaseFetcher,
    DataNotAvailableError,
    RateLimitError,
)
from src.data.models import (
    AssetCategory,
    AssetPrice,
    AssetType,
    HistoricalDataPoint,
    SearchResult,
)
from src.data.symbols import ALPHA_VANTAGE, normalize_symbol

logger = logging.getLogger(__name__)

TIME_SERIES_KEY = "Time Series (Daily)"

# Free tier returns roughly the last 100 trading days in compact mode
COMPACT_MAX_DAYS = 100


class AlphaVantageFetcher(BaseFetcher):
    """Fetcher for the Alpha Vantage query API.

    Alpha Vantage answers throttled requests with HTTP 200 and a "Note" or
    "Information" message instead of data; those are raised as
    RateLimitError.
    """

    name = ALPHA_VANTAGE
    base_url = "https://www.alphavantage.co"

    def _query(self, function: str, **params: Any) -> dict[str, Any]:
        """Call the /query endpoint for an Alpha Vantage function.

        Raises:
            RateLimitError: If the payload is a throttling note
            DataNotAvailableError: If the payload carries an error message
        """
        payload = self._get_json(
            "/query",
            params={"function": function, **params, "apikey": self._require_api_key()},
        )

        if not isinstance(payload, dict):
            raise DataNotAvailableError(
                f"Unexpected {function} payload", source=self.name
            )
        for key in ("Note", "Information"):
            if key in payload:
                raise RateLimitError(str(payload[key]), source=self.name)
        if "Error Message" in payload:
            raise DataNotAvailableError(
                str(payload["Error Message"]), source=self.name
            )
        return payload

    def validate_connection(self) -> bool:
        """Validate the API key with a cheap quote request."""
        try:
            self.fetch_price("IBM")
            return True
        except Exception:
            return False

    def fetch_price(self, symbol: str) -> AssetPrice:
        """Fetch the latest quote of a stock.

        Args:
            symbol: Stock ticker (e.g. 'AAPL')

        Returns:
            Normalized AssetPrice

        Raises:
            RateLimitError: If Alpha Vantage throttled the request
            DataNotAvailableError: If the quote is empty or malformed
        """
        cleaned = normalize_symbol(symbol)
        payload = self._query("GLOBAL_QUOTE", symbol=cleaned)

        quote = self._as_dict(payload.get("Global Quote") or {}, "Global Quote")
        if not quote:
            raise DataNotAvailableError(
                f"No quote returned for {cleaned}", source=self.name
            )

        price = self._to_float(quote.get("05. price"), "05. price")
        return AssetPrice(
            symbol=cleaned,
            category=AssetCategory.STOCKS,
            price=price,
            change=self._to_float(quote.get("09. change"), "09. change"),
            change_percent=self._to_float(
                quote.get("10. change percent"), "10. change percent"
            ),
            price_in_usd=price,
            source=self.name,
            last_updated=self._trading_day(quote.get("07. latest trading day")),
        )

    def _trading_day(self, value: Any) -> str:
        if not value:
            raise DataNotAvailableError(
                "Missing field: 07. latest trading day", source=self.name
            )
        return f"{value}T00:00:00Z"

    def fetch_history(self, symbol: str, days: int) -> list[HistoricalDataPoint]:
        """Fetch daily OHLCV bars.

        Args:
            symbol: Stock ticker
            days: Number of most recent trading days to keep

        Returns:
            Data points ordered oldest first
        """
        cleaned = normalize_symbol(symbol)
        outputsize = "compact" if days <= COMPACT_MAX_DAYS else "full"
        payload = self._query(
            "TIME_SERIES_DAILY", symbol=cleaned, outputsize=outputsize
        )

        series = self._as_dict(payload.get(TIME_SERIES_KEY) or {}, TIME_SERIES_KEY)
        if not series:
            raise DataNotAvailableError(
                f"No daily series for {cleaned}", source=self.name
            )

        points = []
        for day, bar in series.items():
            values = self._as_dict(bar, f"{TIME_SERIES_KEY}.{day}")
            points.append(
                HistoricalDataPoint(
                    date=day,
                    open=self._to_float(values.get("1. open"), "1. open"),
                    high=self._to_float(values.get("2. high"), "2. high"),
                    low=self._to_float(values.get("3. low"), "3. low"),
                    close=self._to_float(values.get("4. close"), "4. close"),
                    volume=self._to_float(values.get("5. volume"), "5. volume"),
                )
            )
        points.sort(key=lambda p: p.date)
        return points[-days:]

    def search(self, query: str) -> list[SearchResult]:
        """Search listed securities by keywords.

        Raises:
            DataNotAvailableError: If the response has no ``bestMatches``
        """
        payload = self._query("SYMBOL_SEARCH", keywords=query)

        matches = payload.get("bestMatches")
        if matches is None:
            raise DataNotAvailableError(
                "Invalid response from SYMBOL_SEARCH", source=self.name
            )

        return [
            SearchResult(
                symbol=match["1. symbol"],
                name=match["2. name"],
                asset_type=AssetType.STOCK,
                region=match.get("4. region"),
                currency=match.get("8. currency"),
            )
            for match in self._as_list(matches, "bestMatches")
            if isinstance(match, dict)
            and match.get("1. symbol")
            and match.get("2. name")
        ]
