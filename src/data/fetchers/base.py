"""Base fetcher classes shared by all upstream market data providers."""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Any, Protocol, runtime_checkable

import requests

from src.data.models import AssetPrice, HistoricalDataPoint, SearchResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class FetchError(Exception):
    """Base exception for data fetching errors."""

    def __init__(self, message: str, source: str | None = None) -> None:
        """Initialize fetch error.

        Args:
            message: Error description
            source: Data source name (e.g., 'CoinGecko', 'Metals-API')
        """
        self.source = source
        super().__init__(f"[{source}] {message}" if source else message)


class RateLimitError(FetchError):
    """Exception raised when rate limit is exceeded."""

    pass


class DataNotAvailableError(FetchError):
    """Exception raised when requested data is missing or malformed."""

    pass


@runtime_checkable
class PriceProvider(Protocol):
    """Anything that can produce a normalized latest price for a symbol."""

    name: str

    def fetch_price(self, symbol: str) -> AssetPrice:
        """Fetch the latest price, raising FetchError on any failure."""
        ...


@runtime_checkable
class HistoryProvider(Protocol):
    """Anything that can produce daily history for a symbol."""

    name: str

    def fetch_history(self, symbol: str, days: int) -> list[HistoricalDataPoint]:
        """Fetch up to ``days`` daily points, oldest first."""
        ...


@runtime_checkable
class SearchProvider(Protocol):
    """Anything that can search assets by free text."""

    name: str

    def search(self, query: str) -> list[SearchResult]:
        """Return assets matching the query."""
        ...


class BaseFetcher(ABC):
    """Abstract base class for HTTP/JSON data fetchers.

    Subclasses set ``name`` and ``base_url`` and use ``_get_json`` for every
    upstream call. Each request is attempted once: failures surface as
    FetchError subclasses so callers can fall back to another provider.
    """

    name: str = "base"
    base_url: str = ""

    def __init__(
        self,
        api_key: str | None = None,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the fetcher.

        Args:
            api_key: Upstream API key, if the provider requires one
            session: HTTP session to use (a new one is created if omitted)
            timeout: Per-request timeout in seconds
        """
        self._api_key = api_key
        self._session = session or requests.Session()
        self._timeout = timeout

    @abstractmethod
    def validate_connection(self) -> bool:
        """Validate that the connection to the data source is working.

        Returns:
            True if connection is valid, False otherwise.
        """
        pass

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self._session.close()

    def _require_api_key(self) -> str:
        """Return the API key or fail when it is not configured.

        Raises:
            FetchError: If no API key was provided
        """
        if not self._api_key:
            raise FetchError("API key not configured", source=self.name)
        return self._api_key

    def _get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Perform a GET request and decode the JSON body.

        Args:
            path: Path appended to ``base_url``
            params: Query string parameters
            headers: Extra request headers

        Returns:
            Decoded JSON payload

        Raises:
            RateLimitError: On HTTP 429
            DataNotAvailableError: On HTTP 404 or a non-JSON body
            FetchError: On network errors and other HTTP errors
        """
        url = f"{self.base_url}{path}"
        try:
            response = self._session.get(
                url, params=params, headers=headers, timeout=self._timeout
            )
        except requests.RequestException as e:
            raise FetchError(
                f"Request to {path} failed: {e!s}", source=self.name
            ) from e

        if response.status_code == 429:
            raise RateLimitError(
                f"Rate limit exceeded for {path}", source=self.name
            )
        if response.status_code == 404:
            raise DataNotAvailableError(f"Not found: {path}", source=self.name)
        if response.status_code >= 400:
            raise FetchError(
                f"HTTP {response.status_code} from {path}", source=self.name
            )

        try:
            return response.json()
        except ValueError as e:
            raise DataNotAvailableError(
                f"Invalid JSON from {path}", source=self.name
            ) from e

    def _to_float(self, value: Any, field: str) -> float:
        """Parse an upstream numeric field.

        Raises:
            DataNotAvailableError: If the value is missing or not numeric
        """
        if value is None or value == "":
            raise DataNotAvailableError(f"Missing field: {field}", source=self.name)
        try:
            return float(str(value).strip().rstrip("%"))
        except ValueError as e:
            raise DataNotAvailableError(
                f"Non-numeric value for {field}: {value!r}", source=self.name
            ) from e

    def _as_dict(self, value: Any, field: str) -> dict[str, Any]:
        """Return ``value`` if it is a JSON object.

        Raises:
            DataNotAvailableError: If the upstream sent another shape
        """
        if not isinstance(value, dict):
            raise DataNotAvailableError(
                f"Expected object for {field}, got {type(value).__name__}",
                source=self.name,
            )
        return value

    def _as_list(self, value: Any, field: str) -> list[Any]:
        """Return ``value`` if it is a JSON array.

        Raises:
            DataNotAvailableError: If the upstream sent another shape
        """
        if not isinstance(value, list):
            raise DataNotAvailableError(
                f"Expected array for {field}, got {type(value).__name__}",
                source=self.name,
            )
        return value

    def _validate_date_range(self, start_date: date, end_date: date) -> None:
        """Validate that date range is valid.

        Args:
            start_date: Start date for data fetch
            end_date: End date for data fetch

        Raises:
            ValueError: If date range is invalid
        """
        if start_date > end_date:
            raise ValueError(
                f"start_date ({start_date}) must be before end_date ({end_date})"
            )


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
