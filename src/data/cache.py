"""In-memory TTL cache used in front of upstream market data providers."""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300


@dataclass(frozen=True)
class CacheEntry:
    """Stored value with its insertion time and lifetime."""

    value: Any
    inserted_at: float
    ttl_seconds: float

    @property
    def expires_at(self) -> float:
        """Clock reading after which the entry is stale."""
        return self.inserted_at + self.ttl_seconds

    def is_expired(self, now: float) -> bool:
        """Check whether the entry is stale at the given clock reading."""
        return now >= self.expires_at


def make_cache_key(operation: str, symbol: str = "", **params: Any) -> str:
    """Build a cache key of the form ``{operation}-{symbol}-{params}``.

    Parameters are sorted by name and rendered as ``name=value`` joined with
    ``&``; parameters whose value is None are left out.

    Example:
        >>> make_cache_key("historical", "BTC", days=30)
        'historical-BTC-days=30'
    """
    rendered = "&".join(
        f"{name}={params[name]}"
        for name in sorted(params)
        if params[name] is not None
    )
    return f"{operation}-{symbol.upper()}-{rendered}"


class TTLCache:
    """Key/value store whose entries expire after a per-entry TTL.

    Expiry is passive: a stale entry is removed when it is read, or when
    cleanup() sweeps the store. None is never stored, so a failed lookup is
    attempted again on the next request.

    Concurrent misses for the same key are not coalesced; each caller
    populates the entry independently.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty cache.

        Args:
            default_ttl: TTL in seconds used when set() is called without one
            clock: Monotonic time source, injectable for tests
        """
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store a value.

        None values and non-positive TTLs are ignored.

        Args:
            key: Cache key
            value: Value to store
            ttl_seconds: Lifetime in seconds (default: the cache default)
        """
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        if value is None or ttl <= 0:
            return

        with self._lock:
            self._entries[key] = CacheEntry(value, self._clock(), ttl)

    def get_or_set(
        self, key: str, fetcher: Callable[[], T], ttl_seconds: float | None = None
    ) -> T:
        """Return the cached value or populate it from ``fetcher``.

        The fetcher runs outside the lock. Exceptions it raises propagate and
        nothing is cached.

        Args:
            key: Cache key
            fetcher: Zero-argument callable producing a fresh value
            ttl_seconds: Lifetime for a freshly fetched value

        Returns:
            Cached or freshly fetched value
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for key: {key}")
            return cached

        logger.debug(f"Cache miss for key: {key}")
        value = fetcher()
        self.set(key, value, ttl_seconds)
        return value

    def delete(self, key: str) -> None:
        """Remove a key if present."""
        with self._lock:
            self._entries.pop(key, None)

    def has(self, key: str) -> bool:
        """Check whether a live entry exists for the key."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return False
            return True

    def ttl(self, key: str) -> float:
        """Remaining lifetime of a key in seconds, or -1 if missing/expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return -1
            remaining = entry.expires_at - self._clock()
            return remaining if remaining > 0 else -1

    def cleanup(self) -> int:
        """Drop every expired entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def keys(self) -> list[str]:
        """Keys of all live entries."""
        self.cleanup()
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        """Number of live entries."""
        self.cleanup()
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, int]:
        """Hit/miss counters and current size."""
        return {"hits": self.hits, "misses": self.misses, "size": len(self)}
