"""Tests for data fetchers.

Every adapter runs against a mocked requests session; no network access.
"""

from datetime import date, datetime, timezone

import pytest
import requests

from src.data.fetchers.alpha_vantage import AlphaVantageFetcher
from src.data.fetchers.base import (
    BaseFetcher,
    DataNotAvailableError,
    FetchError,
    PriceProvider,
    RateLimitError,
)
from src.data.fetchers.coingecko import CoinGeckoFetcher, coingecko_id
from src.data.fetchers.coinmarketcap import (
    CoinMarketCapFetcher,
    change_from_percent,
)
from src.data.fetchers.metals import MetalsAPIFetcher
from src.data.fetchers.mock import MockFetcher
from src.data.models import AssetCategory, AssetType


class TestBaseErrors:
    """Tests for base fetcher error classes."""

    def test_fetch_error_with_source(self) -> None:
        """Test FetchError with source."""
        error = FetchError("Something went wrong", source="CoinGecko")
        assert "[CoinGecko]" in str(error)
        assert "Something went wrong" in str(error)
        assert error.source == "CoinGecko"

    def test_fetch_error_without_source(self) -> None:
        """Test FetchError without source."""
        error = FetchError("Something went wrong")
        assert str(error) == "Something went wrong"

    def test_rate_limit_error(self) -> None:
        """Test RateLimitError inherits from FetchError."""
        error = RateLimitError("Rate limit exceeded", source="Alpha Vantage")
        assert isinstance(error, FetchError)
        assert "[Alpha Vantage]" in str(error)

    def test_data_not_available_error(self) -> None:
        """Test DataNotAvailableError inherits from FetchError."""
        error = DataNotAvailableError("No data for symbol", source="Metals-API")
        assert isinstance(error, FetchError)


class ConcreteFetcher(BaseFetcher):
    """Minimal fetcher exercising the shared HTTP helpers."""

    name = "Concrete"
    base_url = "https://example.test"

    def validate_connection(self) -> bool:
        return True


class TestBaseFetcher:
    """Tests for shared request handling and parsing helpers."""

    def test_get_json_returns_payload(self, session_factory) -> None:
        """Successful responses are decoded."""
        session = session_factory({"ok": True})
        fetcher = ConcreteFetcher(session=session, timeout=3.0)

        assert fetcher._get_json("/ping", params={"a": 1}) == {"ok": True}
        session.get.assert_called_once_with(
            "https://example.test/ping", params={"a": 1}, headers=None, timeout=3.0
        )

    @pytest.mark.parametrize(
        ("status_code", "error_type"),
        [
            (429, RateLimitError),
            (404, DataNotAvailableError),
            (500, FetchError),
            (401, FetchError),
        ],
    )
    def test_http_status_mapping(
        self, session_factory, status_code: int, error_type: type
    ) -> None:
        """HTTP errors map to typed fetch errors."""
        fetcher = ConcreteFetcher(session=session_factory({}, status_code=status_code))
        with pytest.raises(error_type):
            fetcher._get_json("/thing")

    def test_network_error_wrapped(self, session_factory) -> None:
        """Transport failures surface as FetchError."""
        session = session_factory({})
        session.get.side_effect = requests.ConnectionError("connection refused")
        fetcher = ConcreteFetcher(session=session)

        with pytest.raises(FetchError, match="connection refused"):
            fetcher._get_json("/thing")

    def test_invalid_json(self, session_factory) -> None:
        """Non-JSON bodies are reported as unavailable data."""
        session = session_factory({})
        session.get.return_value.json.side_effect = ValueError("no json")
        fetcher = ConcreteFetcher(session=session)

        with pytest.raises(DataNotAvailableError, match="Invalid JSON"):
            fetcher._get_json("/thing")

    def test_to_float(self) -> None:
        """Numeric strings, including percentages, are parsed."""
        fetcher = ConcreteFetcher()
        assert fetcher._to_float("1.25%", "pct") == 1.25
        assert fetcher._to_float(" 42 ", "n") == 42.0

    @pytest.mark.parametrize("value", [None, "", "abc"])
    def test_to_float_rejects_bad_values(self, value) -> None:
        """Missing or non-numeric values raise DataNotAvailableError."""
        with pytest.raises(DataNotAvailableError):
            ConcreteFetcher()._to_float(value, "field")

    def test_require_api_key(self) -> None:
        """Missing keys raise before any request."""
        with pytest.raises(FetchError, match="API key not configured"):
            ConcreteFetcher()._require_api_key()
        assert ConcreteFetcher(api_key="k")._require_api_key() == "k"

    def test_valid_date_range(self) -> None:
        """Test valid date range passes validation."""
        ConcreteFetcher()._validate_date_range(date(2024, 1, 1), date(2024, 12, 31))

    def test_invalid_date_range(self) -> None:
        """Test invalid date range raises ValueError."""
        with pytest.raises(ValueError, match="must be before"):
            ConcreteFetcher()._validate_date_range(
                date(2024, 12, 31), date(2024, 1, 1)
            )

    def test_shape_helpers(self) -> None:
        """Wrong JSON shapes are reported as unavailable data."""
        fetcher = ConcreteFetcher()
        assert fetcher._as_dict({"a": 1}, "root") == {"a": 1}
        assert fetcher._as_list([1], "root") == [1]
        with pytest.raises(DataNotAvailableError, match="Expected object for root"):
            fetcher._as_dict([], "root")
        with pytest.raises(DataNotAvailableError, match="Expected array for prices"):
            fetcher._as_list("n/a", "prices")


class TestCoinGeckoFetcher:
    """Tests for the CoinGecko adapter."""

    def test_coingecko_id(self) -> None:
        """Tickers map to CoinGecko slugs."""
        assert coingecko_id("btc") == "bitcoin"
        assert coingecko_id("AVAX") == "avalanche-2"
        assert coingecko_id("PEPE") == "pepe"

    def test_fetch_price(self, session_factory) -> None:
        """Coin details are normalized into an AssetPrice."""
        session = session_factory(
            {
                "name": "Bitcoin",
                "market_data": {
                    "current_price": {"usd": 65000.0, "btc": 1.0},
                    "price_change_24h": 1200.0,
                    "price_change_percentage_24h": 1.88,
                    "last_updated": "2024-03-01T12:00:00.000Z",
                },
            }
        )
        quote = CoinGeckoFetcher(session=session).fetch_price("btc")

        assert quote.symbol == "BTC"
        assert quote.name == "Bitcoin"
        assert quote.category == AssetCategory.CRYPTOCURRENCY
        assert quote.price == 65000.0
        assert quote.price_in_usd == 65000.0
        assert quote.price_in_btc == 1.0
        assert quote.change == 1200.0
        assert quote.source == "CoinGecko"
        assert session.get.call_args.args[0].endswith("/coins/bitcoin")

    def test_fetch_price_without_usd(self, session_factory) -> None:
        """A payload lacking a USD price is rejected."""
        session = session_factory({"market_data": {"current_price": {}}})
        with pytest.raises(DataNotAvailableError):
            CoinGeckoFetcher(session=session).fetch_price("BTC")

    def test_api_key_header(self, session_factory) -> None:
        """A configured key is sent as a header."""
        session = session_factory({"gecko_says": "(V3) To the Moon!"})
        fetcher = CoinGeckoFetcher(api_key="secret", session=session)

        assert fetcher.validate_connection() is True
        headers = session.get.call_args.kwargs["headers"]
        assert headers["x-cg-pro-api-key"] == "secret"

    def test_fetch_history_collapses_to_daily(self, session_factory) -> None:
        """Intraday points collapse to the last observation of each day."""
        session = session_factory(
            {
                "prices": [
                    [1704067200000, 42000.0],
                    [1704110400000, 42500.0],
                    [1704153600000, 43000.0],
                ],
                "total_volumes": [
                    [1704067200000, 1.0e9],
                    [1704110400000, 1.5e9],
                    [1704153600000, 2.0e9],
                ],
            }
        )
        points = CoinGeckoFetcher(session=session).fetch_history("BTC", 2)

        assert [p.date for p in points] == [date(2024, 1, 1), date(2024, 1, 2)]
        assert points[0].close == 42500.0
        assert points[0].volume == 1.5e9
        assert points[1].close == 43000.0
        assert "interval" not in session.get.call_args.kwargs["params"]

    def test_long_history_requests_daily_interval(self, session_factory) -> None:
        """Ranges over 90 days ask for daily granularity."""
        session = session_factory({"prices": [[1704067200000, 42000.0]]})
        CoinGeckoFetcher(session=session).fetch_history("ETH", 365)

        params = session.get.call_args.kwargs["params"]
        assert params["interval"] == "daily"
        assert params["days"] == 365

    def test_fetch_history_empty(self, session_factory) -> None:
        """A payload without prices is rejected."""
        session = session_factory({"prices": []})
        with pytest.raises(DataNotAvailableError):
            CoinGeckoFetcher(session=session).fetch_history("BTC", 7)

    def test_search(self, session_factory) -> None:
        """Coin search results are upper-cased crypto matches."""
        session = session_factory(
            {
                "coins": [
                    {"symbol": "sol", "name": "Solana"},
                    {"symbol": "", "name": "Broken"},
                ]
            }
        )
        results = CoinGeckoFetcher(session=session).search("sol")

        assert len(results) == 1
        assert results[0].symbol == "SOL"
        assert results[0].asset_type == AssetType.CRYPTO

    def test_fetch_top_assets(self, session_factory) -> None:
        """Market listings become MarketAsset entries."""
        session = session_factory(
            [
                {
                    "symbol": "btc",
                    "name": "Bitcoin",
                    "current_price": 65000.0,
                    "price_change_percentage_24h": 1.5,
                    "image": "https://img.test/btc.png",
                    "last_updated": "2024-03-01T12:00:00.000Z",
                }
            ]
        )
        assets = CoinGeckoFetcher(session=session).fetch_top_assets(limit=500)

        assert assets[0].symbol == "BTC"
        assert assets[0].price == 65000.0
        assert session.get.call_args.kwargs["params"]["per_page"] == 250

    def test_fetch_top_assets_unexpected_payload(self, session_factory) -> None:
        """Non-list payloads are rejected."""
        session = session_factory({"error": "oops"})
        with pytest.raises(DataNotAvailableError):
            CoinGeckoFetcher(session=session).fetch_top_assets()

    def test_validate_connection_failure(self, session_factory) -> None:
        """Connection check reports False on errors."""
        session = session_factory({}, status_code=500)
        assert CoinGeckoFetcher(session=session).validate_connection() is False


    @pytest.mark.parametrize(
        "payload",
        [[], {"market_data": {"current_price": "n/a"}}, {"market_data": [1]}],
    )
    def test_fetch_price_malformed(self, session_factory, payload) -> None:
        """Wrong-shaped coin payloads raise DataNotAvailableError."""
        with pytest.raises(DataNotAvailableError):
            CoinGeckoFetcher(session=session_factory(payload)).fetch_price("BTC")

    @pytest.mark.parametrize("payload", [[], {"prices": {"a": 1}}])
    def test_fetch_history_malformed(self, session_factory, payload) -> None:
        """Wrong-shaped chart payloads raise DataNotAvailableError."""
        fetcher = CoinGeckoFetcher(session=session_factory(payload))
        with pytest.raises(DataNotAvailableError):
            fetcher.fetch_history("BTC", 7)

    @pytest.mark.parametrize("payload", [[], {"coins": "none"}])
    def test_search_malformed(self, session_factory, payload) -> None:
        """Wrong-shaped search payloads raise DataNotAvailableError."""
        with pytest.raises(DataNotAvailableError):
            CoinGeckoFetcher(session=session_factory(payload)).search("bit")


class TestCoinMarketCapFetcher:
    """Tests for the CoinMarketCap adapter."""

    @staticmethod
    def _quote_payload(coin) -> dict:
        return {"status": {"error_code": 0}, "data": {"SOL": coin}}

    def test_change_from_percent(self) -> None:
        """Absolute change is derived from the percentage."""
        assert change_from_percent(150.0, 50.0) == pytest.approx(50.0)
        assert change_from_percent(100.0, 0.0) == 0.0
        assert change_from_percent(100.0, -100.0) == -100.0

    def test_requires_api_key(self, session_factory) -> None:
        """No request is made without a key."""
        session = session_factory({})
        with pytest.raises(FetchError, match="API key not configured"):
            CoinMarketCapFetcher(session=session).fetch_price("SOL")
        session.get.assert_not_called()

    @pytest.mark.parametrize("as_list", [True, False])
    def test_fetch_price(self, session_factory, as_list: bool) -> None:
        """Quotes are read from both list and object shaped data."""
        coin = {
            "name": "Solana",
            "quote": {
                "USD": {
                    "price": 150.0,
                    "percent_change_24h": 50.0,
                    "last_updated": "2024-03-01T12:00:00.000Z",
                }
            },
        }
        session = session_factory(self._quote_payload([coin] if as_list else coin))
        quote = CoinMarketCapFetcher(api_key="k", session=session).fetch_price("sol")

        assert quote.symbol == "SOL"
        assert quote.name == "Solana"
        assert quote.price == 150.0
        assert quote.change == pytest.approx(50.0)
        assert quote.change_percent == 50.0
        assert quote.price_in_btc is None
        assert quote.source == "CoinMarketCap"
        assert quote.last_updated == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
        assert session.get.call_args.kwargs["headers"]["X-CMC_PRO_API_KEY"] == "k"

    def test_fetch_price_unknown_symbol(self, session_factory) -> None:
        """An empty coin list is reported as unavailable."""
        session = session_factory(self._quote_payload([]))
        with pytest.raises(DataNotAvailableError, match="not found"):
            CoinMarketCapFetcher(api_key="k", session=session).fetch_price("SOL")

    def test_status_error(self, session_factory) -> None:
        """Errors reported in the status block raise FetchError."""
        session = session_factory(
            {"status": {"error_code": 1002, "error_message": "API key missing."}}
        )
        with pytest.raises(FetchError, match="API key missing"):
            CoinMarketCapFetcher(api_key="k", session=session).fetch_price("SOL")

    def test_fetch_history(self, session_factory) -> None:
        """Historical quotes are parsed and ordered oldest first."""
        session = session_factory(
            {
                "status": {"error_code": 0},
                "data": {
                    "SOL": [
                        {
                            "quotes": [
                                {
                                    "timestamp": "2024-01-02T23:59:59.999Z",
                                    "quote": {"USD": {"price": 101.0}},
                                },
                                {
                                    "timestamp": "2024-01-01T23:59:59.999Z",
                                    "quote": {
                                        "USD": {"price": 100.0, "volume_24h": 5.0e8}
                                    },
                                },
                                {"timestamp": "2024-01-03T23:59:59.999Z", "quote": {}},
                            ]
                        }
                    ]
                },
            }
        )
        points = CoinMarketCapFetcher(api_key="k", session=session).fetch_history(
            "SOL", 3
        )

        assert [p.date for p in points] == [date(2024, 1, 1), date(2024, 1, 2)]
        assert points[0].volume == 5.0e8
        assert session.get.call_args.kwargs["params"]["interval"] == "daily"

    def test_search(self, session_factory) -> None:
        """Symbol map entries become crypto search results."""
        session = session_factory(
            {
                "status": {"error_code": 0},
                "data": [{"symbol": "SOL", "name": "Solana"}],
            }
        )
        results = CoinMarketCapFetcher(api_key="k", session=session).search("sol")

        assert [(r.symbol, r.asset_type) for r in results] == [
            ("SOL", AssetType.CRYPTO)
        ]
        assert session.get.call_args.kwargs["params"] == {"symbol": "SOL"}

    def test_fetch_global_metrics(self, session_factory) -> None:
        """Global metrics map onto CryptoMarketOverview."""
        session = session_factory(
            {
                "status": {"error_code": 0},
                "data": {
                    "btc_dominance": 52.1,
                    "eth_dominance": 16.9,
                    "quote": {
                        "USD": {"total_market_cap": 2.4e12, "total_volume_24h": 9.0e10}
                    },
                },
            }
        )
        overview = CoinMarketCapFetcher(
            api_key="k", session=session
        ).fetch_global_metrics()

        assert overview.total_market_cap == 2.4e12
        assert overview.total_volume_24h == 9.0e10
        assert overview.btc_dominance == 52.1


    @pytest.mark.parametrize(
        "payload",
        [
            [],
            {"status": "ok", "data": {"SOL": []}},
            {"status": {"error_code": 0}, "data": ["SOL"]},
            {"status": {"error_code": 0}, "data": {"SOL": {"quote": "n/a"}}},
        ],
    )
    def test_fetch_price_malformed(self, session_factory, payload) -> None:
        """Wrong-shaped quote payloads raise DataNotAvailableError."""
        fetcher = CoinMarketCapFetcher(api_key="k", session=session_factory(payload))
        with pytest.raises(DataNotAvailableError):
            fetcher.fetch_price("SOL")

    def test_fetch_history_malformed(self, session_factory) -> None:
        """A quotes member that is not a list is rejected."""
        session = session_factory(
            {"status": {"error_code": 0}, "data": {"SOL": {"quotes": "none"}}}
        )
        fetcher = CoinMarketCapFetcher(api_key="k", session=session)
        with pytest.raises(DataNotAvailableError):
            fetcher.fetch_history("SOL", 7)


class TestAlphaVantageFetcher:
    """Tests for the Alpha Vantage adapter."""

    def test_fetch_price(self, session_factory) -> None:
        """GLOBAL_QUOTE fields are parsed into an AssetPrice."""
        session = session_factory(
            {
                "Global Quote": {
                    "01. symbol": "AAPL",
                    "05. price": "180.0000",
                    "07. latest trading day": "2024-03-01",
                    "09. change": "1.5000",
                    "10. change percent": "0.8403%",
                }
            }
        )
        quote = AlphaVantageFetcher(api_key="k", session=session).fetch_price("aapl")

        assert quote.symbol == "AAPL"
        assert quote.category == AssetCategory.STOCKS
        assert quote.price == 180.0
        assert quote.change == 1.5
        assert quote.change_percent == pytest.approx(0.8403)
        assert quote.source == "Alpha Vantage"
        assert quote.last_updated == datetime(2024, 3, 1, tzinfo=timezone.utc)

        params = session.get.call_args.kwargs["params"]
        assert params["function"] == "GLOBAL_QUOTE"
        assert params["symbol"] == "AAPL"
        assert params["apikey"] == "k"

    def test_throttle_note_is_rate_limit(self, session_factory) -> None:
        """Throttling notes sent with HTTP 200 raise RateLimitError."""
        session = session_factory(
            {"Note": "Thank you for using Alpha Vantage! Our standard API rate limit"}
        )
        with pytest.raises(RateLimitError):
            AlphaVantageFetcher(api_key="k", session=session).fetch_price("AAPL")

    def test_information_is_rate_limit(self, session_factory) -> None:
        """Premium/limit information messages raise RateLimitError."""
        session = session_factory({"Information": "API rate limit reached"})
        with pytest.raises(RateLimitError):
            AlphaVantageFetcher(api_key="k", session=session).search("apple")

    def test_error_message(self, session_factory) -> None:
        """Error messages are reported as unavailable data."""
        session = session_factory({"Error Message": "Invalid API call."})
        with pytest.raises(DataNotAvailableError, match="Invalid API call"):
            AlphaVantageFetcher(api_key="k", session=session).fetch_price("NOPE")

    def test_empty_quote(self, session_factory) -> None:
        """An empty Global Quote is rejected."""
        session = session_factory({"Global Quote": {}})
        with pytest.raises(DataNotAvailableError, match="No quote"):
            AlphaVantageFetcher(api_key="k", session=session).fetch_price("NOPE")

    def test_fetch_history_keeps_most_recent_days(self, session_factory) -> None:
        """Daily bars are sorted and trimmed to the requested length."""

        def bar(close: str) -> dict:
            return {
                "1. open": "100.0",
                "2. high": "110.0",
                "3. low": "95.0",
                "4. close": close,
                "5. volume": "1000",
            }

        session = session_factory(
            {
                "Time Series (Daily)": {
                    "2024-03-01": bar("103.0"),
                    "2024-02-28": bar("101.0"),
                    "2024-02-29": bar("102.0"),
                }
            }
        )
        points = AlphaVantageFetcher(api_key="k", session=session).fetch_history(
            "AAPL", 2
        )

        assert [p.date for p in points] == [date(2024, 2, 29), date(2024, 3, 1)]
        assert points[-1].close == 103.0
        assert points[-1].open == 100.0
        assert points[-1].volume == 1000.0
        assert session.get.call_args.kwargs["params"]["outputsize"] == "compact"

    def test_long_history_uses_full_output(self, session_factory) -> None:
        """More than 100 days requires the full series."""
        session = session_factory(
            {
                "Time Series (Daily)": {
                    "2024-03-01": {
                        "1. open": "1",
                        "2. high": "1",
                        "3. low": "1",
                        "4. close": "1",
                        "5. volume": "1",
                    }
                }
            }
        )
        AlphaVantageFetcher(api_key="k", session=session).fetch_history("AAPL", 365)
        assert session.get.call_args.kwargs["params"]["outputsize"] == "full"

    def test_search(self, session_factory) -> None:
        """bestMatches become stock search results."""
        session = session_factory(
            {
                "bestMatches": [
                    {
                        "1. symbol": "AAPL",
                        "2. name": "Apple Inc",
                        "4. region": "United States",
                        "8. currency": "USD",
                    }
                ]
            }
        )
        results = AlphaVantageFetcher(api_key="k", session=session).search("apple")

        assert results[0].symbol == "AAPL"
        assert results[0].asset_type == AssetType.STOCK
        assert results[0].region == "United States"
        assert results[0].currency == "USD"

    def test_search_without_matches(self, session_factory) -> None:
        """A response lacking bestMatches is invalid."""
        session = session_factory({})
        with pytest.raises(DataNotAvailableError, match="SYMBOL_SEARCH"):
            AlphaVantageFetcher(api_key="k", session=session).search("apple")


    def test_fetch_price_malformed(self, session_factory) -> None:
        """A Global Quote that is not an object is rejected."""
        session = session_factory({"Global Quote": ["AAPL"]})
        fetcher = AlphaVantageFetcher(api_key="k", session=session)
        with pytest.raises(DataNotAvailableError):
            fetcher.fetch_price("AAPL")

    @pytest.mark.parametrize("series", ["n/a", {"2024-01-02": ["185.0"]}])
    def test_fetch_history_malformed(self, session_factory, series) -> None:
        """Wrong-shaped daily series raise DataNotAvailableError."""
        session = session_factory({"Time Series (Daily)": series})
        fetcher = AlphaVantageFetcher(api_key="k", session=session)
        with pytest.raises(DataNotAvailableError):
            fetcher.fetch_history("AAPL", 5)

    def test_search_malformed(self, session_factory) -> None:
        """bestMatches that is not a list is rejected."""
        session = session_factory({"bestMatches": {"1. symbol": "AAPL"}})
        fetcher = AlphaVantageFetcher(api_key="k", session=session)
        with pytest.raises(DataNotAvailableError):
            fetcher.search("apple")


class TestMetalsAPIFetcher:
    """Tests for the Metals-API adapter."""

    def test_fetch_price_inverts_rate(self, session_factory) -> None:
        """USD-based rates are inverted into a price per troy ounce."""
        session = session_factory(
            {
                "success": True,
                "timestamp": 1709294400,
                "base": "USD",
                "rates": {"XAU": 0.0005},
            }
        )
        quote = MetalsAPIFetcher(api_key="k", session=session).fetch_price("xau")

        assert quote.symbol == "XAU"
        assert quote.name == "Gold"
        assert quote.price == pytest.approx(2000.0)
        assert quote.unit == "troy ounce"
        assert quote.category == AssetCategory.PRECIOUS_METAL
        assert quote.last_updated == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)

        params = session.get.call_args.kwargs["params"]
        assert params["access_key"] == "k"
        assert params["symbols"] == "XAU"

    def test_unsuccessful_response(self, session_factory) -> None:
        """success: false raises with the upstream message."""
        session = session_factory(
            {"success": False, "error": {"code": 101, "info": "Invalid API key"}}
        )
        with pytest.raises(FetchError, match="Metals-API error: Invalid API key"):
            MetalsAPIFetcher(api_key="bad", session=session).fetch_price("XAU")

    def test_zero_rate_rejected(self, session_factory) -> None:
        """A zero rate cannot be inverted."""
        session = session_factory({"success": True, "rates": {"XAU": 0}})
        with pytest.raises(DataNotAvailableError):
            MetalsAPIFetcher(api_key="k", session=session).fetch_price("XAU")

    def test_fetch_prices(self, session_factory) -> None:
        """Several metals are priced in one request."""
        session = session_factory(
            {"success": True, "rates": {"XAU": 0.0005, "XAG": 0.04}}
        )
        prices = MetalsAPIFetcher(api_key="k", session=session).fetch_prices(
            ["xau", "xag"]
        )

        assert prices["XAU"] == pytest.approx(2000.0)
        assert prices["XAG"] == pytest.approx(25.0)
        assert session.get.call_args.kwargs["params"]["symbols"] == "XAU,XAG"

    def test_fetch_timeframe_skips_missing_days(self, session_factory) -> None:
        """Days without a rate are left out of the series."""
        session = session_factory(
            {
                "success": True,
                "rates": {
                    "2024-01-02": {"XAU": 0.0004},
                    "2024-01-01": {"XAU": 0.0005},
                    "2024-01-03": {},
                },
            }
        )
        points = MetalsAPIFetcher(api_key="k", session=session).fetch_timeframe(
            "XAU", date(2024, 1, 1), date(2024, 1, 3)
        )

        assert [p.date for p in points] == [date(2024, 1, 1), date(2024, 1, 2)]
        assert points[1].close == pytest.approx(2500.0)
        assert points[0].unit == "troy ounce"

    def test_fetch_timeframe_without_rates(self, session_factory) -> None:
        """An empty timeframe is reported as unavailable."""
        session = session_factory({"success": True, "rates": {}})
        with pytest.raises(DataNotAvailableError):
            MetalsAPIFetcher(api_key="k", session=session).fetch_timeframe(
                "XAU", date(2024, 1, 1), date(2024, 1, 3)
            )

    def test_fetch_timeframe_invalid_range(self) -> None:
        """Reversed date ranges are rejected before any request."""
        with pytest.raises(ValueError, match="must be before"):
            MetalsAPIFetcher(api_key="k").fetch_timeframe(
                "XAU", date(2024, 2, 1), date(2024, 1, 1)
            )


    def test_malformed_rates(self, session_factory) -> None:
        """Rates that are not an object are rejected."""
        session = session_factory({"success": True, "rates": [0.0005]})
        with pytest.raises(DataNotAvailableError):
            MetalsAPIFetcher(api_key="k", session=session).fetch_price("XAU")

    def test_fetch_timeframe_malformed_day(self, session_factory) -> None:
        """A day whose rates are not an object is rejected."""
        session = session_factory(
            {"success": True, "rates": {"2024-01-01": [0.0005]}}
        )
        with pytest.raises(DataNotAvailableError):
            MetalsAPIFetcher(api_key="k", session=session).fetch_timeframe(
                "XAU", date(2024, 1, 1), date(2024, 1, 1)
            )


class TestMockFetcher:
    """Tests for the offline provider."""

    def test_satisfies_price_provider(self) -> None:
        """The mock provider can stand in for any upstream."""
        assert isinstance(MockFetcher(), PriceProvider)

    def test_prices_are_deterministic(self) -> None:
        """The same symbol and day yield the same price."""
        first = MockFetcher(today=date(2024, 3, 1)).fetch_price("BTC")
        second = MockFetcher(today=date(2024, 3, 1)).fetch_price("btc")

        assert first.price == second.price
        assert 62500.0 * 0.95 <= first.price <= 62500.0 * 1.05
        assert first.name == "Bitcoin"
        assert first.source == "Mock"

    def test_metal_unit(self) -> None:
        """Metals are quoted per troy ounce."""
        quote = MockFetcher().fetch_price("XAU")
        assert quote.unit == "troy ounce"
        assert quote.category == AssetCategory.PRECIOUS_METAL

    def test_history_length_and_end(self) -> None:
        """History has one point per day ending on the configured day."""
        points = MockFetcher(today=date(2024, 3, 1)).fetch_history("AAPL", 30)

        assert len(points) == 30
        assert points[-1].date == date(2024, 3, 1)
        assert points[0].date == date(2024, 2, 1)
        assert all(p.low <= p.close <= p.high for p in points)

    def test_search(self) -> None:
        """Search covers crypto and stock names."""
        symbols = {r.symbol for r in MockFetcher().search("apple")}
        assert symbols == {"AAPL"}
        assert "BTC" in {r.symbol for r in MockFetcher().search("bit")}

    def test_top_assets_limit(self) -> None:
        """Top assets honour the limit."""
        assets = MockFetcher().fetch_top_assets(limit=3)
        assert len(assets) == 3
        assert assets[0].symbol == "BTC"
