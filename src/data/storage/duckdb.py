"""DuckDB storage layer for asset snapshots, price history and watchlists.

Tables:
- assets: last known quote per symbol (upserted on every successful fetch)
- historical_prices: daily bars keyed by (symbol, date)
- watchlist: user watchlist entries keyed by (user_id, symbol)
"""

import logging
import os
import threading
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

import duckdb
from pydantic import ValidationError

from src.data.models import (
    AssetCategory,
    AssetPrice,
    HistoricalDataPoint,
    MarketAsset,
    WatchlistEntry,
)
from src.errors import AppError

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


class PathValidationError(Exception):
    """Raised when a path fails security validation."""

    pass


def _validate_db_path(db_path: str) -> Path:
    """Validate database path to prevent path traversal attacks.

    Args:
        db_path: The database path to validate.

    Returns:
        Validated Path object.

    Raises:
        PathValidationError: If the path fails validation.
    """
    path = Path(db_path)

    try:
        resolved_path = path.resolve()
    except (OSError, ValueError) as e:
        raise PathValidationError(f"Invalid path: {e}") from e

    if ".." in Path(db_path).parts:
        raise PathValidationError(
            "Path traversal detected: '..' not allowed in database path"
        )

    valid_extensions = {".duckdb", ".db", ".ddb"}
    if resolved_path.suffix and resolved_path.suffix.lower() not in valid_extensions:
        raise PathValidationError(
            f"Invalid database extension: {resolved_path.suffix}. "
            f"Allowed extensions: {valid_extensions}"
        )

    system_dirs = ["/etc", "/usr", "/bin", "/sbin", "/proc", "/sys"]
    resolved_str = str(resolved_path).lower()
    for sys_dir in system_dirs:
        if resolved_str == sys_dir or resolved_str.startswith(sys_dir + os.sep):
            raise PathValidationError(
                f"Database path cannot be in system directory: {sys_dir}"
            )

    logger.debug(f"Database path validated: {resolved_path}")
    return resolved_path


def _to_db_timestamp(value: datetime) -> datetime:
    """Convert to naive UTC for TIMESTAMP columns."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


def _from_db_timestamp(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


class DuckDBStorage:
    """DuckDB storage for market data snapshots and user watchlists.

    Works with a file path or ``:memory:``. Usable as a context manager.
    """

    def __init__(self, db_path: str = MEMORY_DB) -> None:
        """Initialize DuckDB connection and create schema.

        Args:
            db_path: Path to the DuckDB database file, or ':memory:'. A new
                database is created if the file does not exist.

        Raises:
            PathValidationError: If the database path fails security validation.
        """
        self._lock = threading.RLock()
        self._closed = False
        if db_path == MEMORY_DB:
            self.db_path: Path | None = None
            self.conn = duckdb.connect(MEMORY_DB)
            logger.info("Connected to in-memory DuckDB")
        else:
            self.db_path = _validate_db_path(db_path)
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = duckdb.connect(str(self.db_path))
            logger.info(f"Connected to DuckDB at {self.db_path}")

        self._create_schema()

    def _create_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS assets (
                symbol VARCHAR PRIMARY KEY,
                name VARCHAR,
                category VARCHAR,
                price DOUBLE NOT NULL,
                change DOUBLE NOT NULL DEFAULT 0,
                change_percent DOUBLE NOT NULL DEFAULT 0,
                price_in_btc DOUBLE,
                unit VARCHAR,
                source VARCHAR NOT NULL,
                last_updated TIMESTAMP NOT NULL,
                stored_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS historical_prices (
                symbol VARCHAR NOT NULL,
                date DATE NOT NULL,
                open DOUBLE,
                high DOUBLE,
                low DOUBLE,
                close DOUBLE NOT NULL,
                volume DOUBLE,
                unit VARCHAR,
                PRIMARY KEY (symbol, date)
            )
        """)

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS watchlist (
                user_id VARCHAR NOT NULL,
                symbol VARCHAR NOT NULL,
                asset_type VARCHAR NOT NULL,
                added_at TIMESTAMP NOT NULL,
                PRIMARY KEY (user_id, symbol)
            )
        """)

        self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_historical_date "
            "ON historical_prices(date)"
        )
        logger.debug("Database schema created successfully")

    def _execute(self, sql: str, params: list[Any] | None = None) -> None:
        with self._lock:
            self.conn.execute(sql, params)

    def _execute_many(self, sql: str, records: list[tuple[Any, ...]]) -> None:
        with self._lock:
            self.conn.executemany(sql, records)

    def _query(
        self, sql: str, params: list[Any] | None = None
    ) -> list[tuple[Any, ...]]:
        """Run a statement and fetch every row.

        A single connection is shared by request threads, so execution and
        fetching happen under one lock.
        """
        with self._lock:
            return self.conn.execute(sql, params).fetchall()

    def upsert_asset(self, quote: AssetPrice) -> None:
        """Insert or replace the snapshot of an asset.

        Args:
            quote: Latest successfully fetched price
        """
        self._execute(
            """
            INSERT OR REPLACE INTO assets
            (symbol, name, category, price, change, change_percent,
             price_in_btc, unit, source, last_updated, stored_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
            [
                quote.symbol,
                quote.name,
                quote.category.value if quote.category else None,
                quote.price,
                quote.change,
                quote.change_percent,
                quote.price_in_btc,
                quote.unit,
                quote.source,
                _to_db_timestamp(quote.last_updated),
                _to_db_timestamp(datetime.now(timezone.utc)),
            ],
        )
        logger.debug(f"Stored snapshot for {quote.symbol}")

    def get_asset(self, symbol: str) -> AssetPrice | None:
        """Get the stored snapshot of an asset.

        Args:
            symbol: Asset symbol

        Returns:
            The snapshot, or None if the asset was never stored
        """
        rows = self._query(
            """
            SELECT symbol, name, category, price, change, change_percent,
                   price_in_btc, unit, source, last_updated
            FROM assets
            WHERE symbol = ?
        """,
            [symbol.upper()],
        )

        if not rows:
            return None

        row = rows[0]
        return AssetPrice(
            symbol=row[0],
            name=row[1],
            category=AssetCategory(row[2]) if row[2] else None,
            price=row[3],
            change=row[4],
            change_percent=row[5],
            price_in_btc=row[6],
            price_in_usd=row[3],
            unit=row[7],
            source=row[8],
            last_updated=_from_db_timestamp(row[9]),
        )

    def list_assets(self) -> list[MarketAsset]:
        """Get every stored asset as a catalog entry, ordered by symbol."""
        result = self._query(
            """
            SELECT symbol, name, category, price, change_percent, last_updated
            FROM assets
            WHERE category IS NOT NULL
            ORDER BY symbol
        """
        )

        assets = []
        for row in result:
            try:
                assets.append(
                    MarketAsset(
                        symbol=row[0],
                        name=row[1] or row[0],
                        category=row[2],
                        price=row[3],
                        change_percent=row[4],
                        last_updated=_from_db_timestamp(row[5]),
                    )
                )
            except ValidationError as e:
                logger.error(f"Validation error for {row}: {e}")

        return assets

    def insert_historical(
        self, symbol: str, points: list[HistoricalDataPoint]
    ) -> int:
        """Insert or replace daily bars for a symbol.

        Args:
            symbol: Asset symbol
            points: Daily bars to store

        Returns:
            Number of records written
        """
        if not points:
            return 0

        records = [
            (
                symbol.upper(),
                p.date,
                p.open,
                p.high,
                p.low,
                p.close,
                p.volume,
                p.unit,
            )
            for p in points
        ]
        self._execute_many(
            """
            INSERT OR REPLACE INTO historical_prices
            (symbol, date, open, high, low, close, volume, unit)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
            records,
        )

        logger.info(f"Stored {len(records)} historical records for {symbol}")
        return len(records)

    def get_historical(
        self, symbol: str, start_date: date, end_date: date
    ) -> list[HistoricalDataPoint]:
        """Get stored daily bars for a date range.

        Args:
            symbol: Asset symbol
            start_date: Start date (inclusive)
            end_date: End date (inclusive)

        Returns:
            Data points ordered by date ascending
        """
        result = self._query(
            """
            SELECT date, open, high, low, close, volume, unit
            FROM historical_prices
            WHERE symbol = ? AND date >= ? AND date <= ?
            ORDER BY date ASC
        """,
            [symbol.upper(), start_date, end_date],
        )

        return [
            HistoricalDataPoint(
                date=row[0],
                open=row[1],
                high=row[2],
                low=row[3],
                close=row[4],
                volume=row[5],
                unit=row[6],
            )
            for row in result
        ]

    def add_watchlist_entry(self, entry: WatchlistEntry) -> WatchlistEntry:
        """Insert a watchlist entry.

        Args:
            entry: Entry to add

        Returns:
            The stored entry

        Raises:
            AppError: 409 if the user already watches the symbol
        """
        try:
            self._execute(
                """
                INSERT INTO watchlist (user_id, symbol, asset_type, added_at)
                VALUES (?, ?, ?, ?)
            """,
                [
                    entry.user_id,
                    entry.symbol,
                    entry.asset_type.value,
                    _to_db_timestamp(entry.added_at),
                ],
            )
        except duckdb.ConstraintException as e:
            raise AppError.conflict(
                f"{entry.symbol} is already on the watchlist"
            ) from e

        logger.info(f"Added {entry.symbol} to watchlist of {entry.user_id}")
        return entry

    def remove_watchlist_entry(self, user_id: str, symbol: str) -> bool:
        """Delete a watchlist entry.

        Returns:
            True if an entry was deleted, False if none existed
        """
        removed = self._query(
            """
            DELETE FROM watchlist
            WHERE user_id = ? AND symbol = ?
            RETURNING symbol
        """,
            [user_id, symbol.upper()],
        )
        return bool(removed)

    def get_watchlist(self, user_id: str) -> list[WatchlistEntry]:
        """Get a user's watchlist ordered by insertion time."""
        result = self._query(
            """
            SELECT user_id, symbol, asset_type, added_at
            FROM watchlist
            WHERE user_id = ?
            ORDER BY added_at ASC, symbol ASC
        """,
            [user_id],
        )

        return [
            WatchlistEntry(
                user_id=row[0],
                symbol=row[1],
                asset_type=row[2],
                added_at=_from_db_timestamp(row[3]),
            )
            for row in result
        ]

    def close(self) -> None:
        """Close the database connection. Safe to call more than once."""
        if self._closed:
            return
        self.conn.close()
        self._closed = True
        logger.info("DuckDB connection closed")

    def __enter__(self) -> "DuckDBStorage":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        self.close()
