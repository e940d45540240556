"""Metals-API fetcher for precious metal spot prices.

Metals-API quotes rates against a USD base, i.e. how many troy ounces one
dollar buys. Prices are therefore the inverse of the returned rate.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any

from src.data.fetchers.base import BaseFetcher, DataNotAvailableError, FetchError
from src.data.models import AssetCategory, AssetPrice, HistoricalDataPoint
from src.data.symbols import METAL_NAMES, METALS_API, normalize_symbol

logger = logging.getLogger(__name__)

TROY_OUNCE = "troy ounce"


class MetalsAPIFetcher(BaseFetcher):
    """Fetcher for metals-api.com (requires METALS_API_KEY)."""

    name = METALS_API
    base_url = "https://metals-api.com/api"

    def _request(self, path: str, **params: Any) -> dict[str, Any]:
        """Call an endpoint with the access key and check ``success``.

        Raises:
            FetchError: If the API reports ``success: false``
        """
        payload = self._get_json(
            path, params={"access_key": self._require_api_key(), **params}
        )
        if not isinstance(payload, dict):
            raise DataNotAvailableError(f"Unexpected {path} payload", source=self.name)
        if payload.get("success") is False:
            error = payload.get("error") or {}
            message = error.get("message") or error.get("info") or "Unknown error"
            raise FetchError(f"Metals-API error: {message}", source=self.name)
        return payload

    def _invert(self, rate: Any, field: str) -> float:
        value = self._to_float(rate, field)
        if value <= 0:
            raise DataNotAvailableError(
                f"Non-positive rate for {field}: {rate!r}", source=self.name
            )
        return 1.0 / value

    def validate_connection(self) -> bool:
        """Validate the access key with a one-symbol quote."""
        try:
            self.fetch_prices(["XAU"])
            return True
        except Exception:
            return False

    def fetch_prices(self, symbols: list[str]) -> dict[str, float]:
        """Fetch USD prices for several metals in one request.

        Args:
            symbols: Metal codes (e.g. ['XAU', 'XAG'])

        Returns:
            Mapping of symbol to USD price per troy ounce

        Raises:
            DataNotAvailableError: If any requested rate is missing or zero
        """
        cleaned = [normalize_symbol(s) for s in symbols]
        payload = self._request("/latest", base="USD", symbols=",".join(cleaned))
        rates = self._as_dict(payload.get("rates") or {}, "rates")
        return {s: self._invert(rates.get(s), f"rates.{s}") for s in cleaned}

    def fetch_price(self, symbol: str) -> AssetPrice:
        """Fetch the latest USD price of a metal.

        Args:
            symbol: Metal code (e.g. 'XAU')

        Returns:
            AssetPrice quoted per troy ounce

        Raises:
            FetchError: If the API reports an error
            DataNotAvailableError: If the rate is missing or zero
        """
        cleaned = normalize_symbol(symbol)
        payload = self._request("/latest", base="USD", symbols=cleaned)

        rates = self._as_dict(payload.get("rates") or {}, "rates")
        price = self._invert(rates.get(cleaned), f"rates.{cleaned}")
        timestamp = payload.get("timestamp")
        last_updated = (
            datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
            if timestamp
            else datetime.now(timezone.utc)
        )

        return AssetPrice(
            symbol=cleaned,
            name=METAL_NAMES.get(cleaned),
            category=AssetCategory.PRECIOUS_METAL,
            price=price,
            price_in_usd=price,
            unit=TROY_OUNCE,
            source=self.name,
            last_updated=last_updated,
        )

    def fetch_history(self, symbol: str, days: int) -> list[HistoricalDataPoint]:
        """Fetch daily prices for the last ``days`` days."""
        end = date.today()
        return self.fetch_timeframe(symbol, end - timedelta(days=days), end)

    def fetch_timeframe(
        self, symbol: str, start_date: date, end_date: date
    ) -> list[HistoricalDataPoint]:
        """Fetch daily prices between two dates (inclusive).

        Args:
            symbol: Metal code
            start_date: First day
            end_date: Last day

        Returns:
            Data points ordered oldest first; days without a rate are skipped

        Raises:
            ValueError: If start_date is after end_date
            FetchError: If the API reports an error
        """
        self._validate_date_range(start_date, end_date)
        cleaned = normalize_symbol(symbol)
        payload = self._request(
            "/timeframe",
            base="USD",
            symbols=cleaned,
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
        )

        rates = self._as_dict(payload.get("rates") or {}, "rates")
        points = []
        for day, day_rates in sorted(rates.items()):
            rate = self._as_dict(day_rates or {}, f"rates.{day}").get(cleaned)
            if not rate:
                continue
            points.append(
                HistoricalDataPoint(
                    date=day,
                    close=self._invert(rate, f"rates.{day}.{cleaned}"),
                    unit=TROY_OUNCE,
                )
            )

        if not points:
            raise DataNotAvailableError(
                f"No rates for {cleaned} between {start_date} and {end_date}",
                source=self.name,
            )
        return points
