"""Environment-driven settings for the market data service."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

_TRUE_VALUES = {"1", "true", "yes", "on"}


class CacheTTLs(BaseModel):
    """Cache time-to-live per operation, in seconds.

    Quotes change quickly and are cached briefly; historical series and the
    market overview are expensive upstream calls and are kept for an hour.
    """

    quote: int = Field(default=60, gt=0)
    search: int = Field(default=300, gt=0)
    stats: int = Field(default=300, gt=0)
    historical: int = Field(default=3600, gt=0)
    overview: int = Field(default=3600, gt=0)
    assets: int = Field(default=300, gt=0)


class Settings(BaseModel):
    """Service configuration.

    Attributes:
        coingecko_api_key: Optional CoinGecko pro/demo key
        coinmarketcap_api_key: CoinMarketCap pro API key
        alpha_vantage_api_key: Alpha Vantage API key
        metals_api_key: Metals-API access key
        use_mock_data: Serve deterministic offline data instead of upstreams
        app_env: 'development' exposes stack traces in error responses
        database_path: Optional DuckDB file for snapshots and watchlists
        request_timeout: Per-request upstream timeout in seconds
        cache_ttl: Cache lifetimes per operation
    """

    coingecko_api_key: str | None = None
    coinmarketcap_api_key: str | None = None
    alpha_vantage_api_key: str | None = None
    metals_api_key: str | None = None
    use_mock_data: bool = False
    app_env: str = "production"
    database_path: str | None = None
    request_timeout: float = Field(default=10.0, gt=0.0)
    cache_ttl: CacheTTLs = Field(default_factory=CacheTTLs)

    @property
    def is_development(self) -> bool:
        """Whether the service runs in development mode."""
        return self.app_env.lower() == "development"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (and a .env file).

        Returns:
            Settings populated from the environment

        Raises:
            pydantic.ValidationError: If a value is malformed (e.g. a
                non-positive TTL)
        """
        load_dotenv()

        ttl_values = {
            name: os.environ[f"CACHE_TTL_{name.upper()}"]
            for name in CacheTTLs.model_fields
            if os.getenv(f"CACHE_TTL_{name.upper()}")
        }

        values: dict[str, object] = {
            "coingecko_api_key": os.getenv("COINGECKO_API_KEY") or None,
            "coinmarketcap_api_key": os.getenv("COINMARKETCAP_API_KEY") or None,
            "alpha_vantage_api_key": os.getenv("ALPHA_VANTAGE_API_KEY") or None,
            "metals_api_key": os.getenv("METALS_API_KEY") or None,
            "use_mock_data": os.getenv("USE_MOCK_DATA", "").lower() in _TRUE_VALUES,
            "app_env": os.getenv("APP_ENV", "production"),
            "database_path": os.getenv("DATABASE_PATH") or None,
            "cache_ttl": CacheTTLs(**ttl_values),
        }
        if os.getenv("REQUEST_TIMEOUT"):
            values["request_timeout"] = os.environ["REQUEST_TIMEOUT"]

        return cls(**values)
