"""User watchlists backed by DuckDB storage."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from src.data.models import AssetType, WatchlistEntry, WatchlistItem
from src.data.storage.duckdb import DuckDBStorage
from src.data.symbols import classify_symbol, normalize_symbol
from src.errors import AppError
from src.services.market_data import MarketDataService

logger = logging.getLogger(__name__)


class WatchlistService:
    """Add, remove and list the assets a user follows.

    The caller supplies the user identity; no authentication happens here.
    """

    def __init__(
        self,
        storage: DuckDBStorage,
        market_data: MarketDataService | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            storage: Storage holding the watchlist table
            market_data: Aggregator used by list_with_prices
        """
        self._storage = storage
        self._market_data = market_data

    def add(
        self, user_id: str, symbol: str, asset_type: AssetType | None = None
    ) -> WatchlistEntry:
        """Add a symbol to a user's watchlist.

        Args:
            user_id: Owner of the watchlist
            symbol: Asset symbol
            asset_type: Asset class; classified from the symbol when omitted

        Returns:
            The created entry

        Raises:
            AppError: 400 on an empty user or symbol, 409 if already present
        """
        if not user_id or not user_id.strip():
            raise AppError.bad_request("user_id is required")
        try:
            cleaned = normalize_symbol(symbol)
        except ValueError as e:
            raise AppError.bad_request(str(e)) from e

        entry = WatchlistEntry(
            user_id=user_id,
            symbol=cleaned,
            asset_type=asset_type or classify_symbol(cleaned),
            added_at=datetime.now(timezone.utc),
        )
        return self._storage.add_watchlist_entry(entry)

    def remove(self, user_id: str, symbol: str) -> None:
        """Remove a symbol from a user's watchlist.

        Raises:
            AppError: 404 if the symbol is not on the watchlist
        """
        try:
            cleaned = normalize_symbol(symbol)
        except ValueError as e:
            raise AppError.bad_request(str(e)) from e
        if not self._storage.remove_watchlist_entry(user_id, cleaned):
            raise AppError.not_found(f"{cleaned} is not on the watchlist")
        logger.info(f"Removed {cleaned} from watchlist of {user_id}")

    def list(self, user_id: str) -> list[WatchlistEntry]:
        """Entries on a user's watchlist, oldest first."""
        return self._storage.get_watchlist(user_id)

    def list_with_prices(self, user_id: str) -> list[WatchlistItem]:
        """Entries joined with their latest quote.

        Assets whose price cannot be obtained are listed with no quote.

        Raises:
            AppError: 503 if no market data service is configured
        """
        if self._market_data is None:
            raise AppError.service_unavailable("Market data is not available")

        return [
            WatchlistItem(
                symbol=entry.symbol,
                asset_type=entry.asset_type,
                added_at=entry.added_at,
                quote=self._market_data.get_asset_price(entry.symbol),
            )
            for entry in self.list(user_id)
        ]
