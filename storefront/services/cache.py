"""
CacheStore - Async-compatible in-memory cache with per-entry TTL.

Features:
- TTL (Time To Live) for every entry, checked lazily on read
- Bulk removal of expired entries (run periodically by CacheSweeper)
- Prefix-based invalidation
- asyncio.Lock around every mutation
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")


class CacheTTL:
    """TTL presets, picked per data-volatility class."""

    SHORT = timedelta(seconds=5)  # inventory counts
    MEDIUM = timedelta(seconds=30)  # semi-static data
    LONG = timedelta(minutes=5)  # catalog listings
    VERY_LONG = timedelta(minutes=30)  # very static data


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    key: str
    data: T
    created_at: datetime
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


class CacheStore:
    """
    Key/value store with per-entry expiry.

    Usage:
        cache = CacheStore()

        await cache.set("products:all", products, CacheTTL.LONG)
        products = await cache.get("products:all")  # None once expired
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        debug: bool = False,
    ):
        self._memory: dict[str, CacheEntry[Any]] = {}
        self._clock = clock
        self._debug = debug
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0
        self._expirations = 0

    async def get(self, key: str, default: Any = None) -> Any:
        """
        Get value from cache.

        Returns the stored value, or ``default`` if missing or expired.
        Expired entries are removed on the way out.
        """
        async with self._lock:
            entry = self._memory.get(key)
            if entry is None:
                self._misses += 1
                self._log(f"MISS: {key}")
                return default

            if not entry.is_valid(self._clock()):
                del self._memory[key]
                self._misses += 1
                self._expirations += 1
                self._log(f"EXPIRED: {key}")
                return default

            self._hits += 1
            self._log(f"HIT: {key}")
            return entry.data

    async def set(self, key: str, data: Any, ttl: timedelta) -> None:
        """
        Set value in cache, replacing any existing entry.

        Args:
            key: Cache key
            data: Data to cache
            ttl: Time to live, must be positive
        """
        if ttl <= timedelta(0):
            raise ValueError(f"ttl must be positive, got {ttl}")

        now = self._clock()
        entry = CacheEntry(key=key, data=data, created_at=now, expires_at=now + ttl)

        async with self._lock:
            self._memory[key] = entry
            self._log(f"SET: {key} (TTL: {ttl.total_seconds()}s)")

    async def delete(self, key: str) -> bool:
        """Delete a specific key from cache."""
        async with self._lock:
            if key in self._memory:
                del self._memory[key]
                self._log(f"DELETE: {key}")
                return True
            return False

    async def invalidate_prefix(self, prefix: str) -> int:
        """
        Remove all keys starting with ``prefix``.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            keys_to_delete = [k for k in self._memory if k.startswith(prefix)]
            for key in keys_to_delete:
                del self._memory[key]

            if keys_to_delete:
                self._log(
                    f"INVALIDATE: {len(keys_to_delete)} entries matching '{prefix}*'"
                )

            return len(keys_to_delete)

    async def clear(self) -> int:
        """Clear all cache entries. Returns count of removed entries."""
        async with self._lock:
            count = len(self._memory)
            self._memory.clear()
            self._log(f"CLEAR: {count} entries removed")
            return count

    async def clear_expired(self) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        async with self._lock:
            now = self._clock()
            expired_keys = [
                k for k, v in self._memory.items() if not v.is_valid(now)
            ]
            for key in expired_keys:
                del self._memory[key]
            self._expirations += len(expired_keys)

            if expired_keys:
                self._log(f"CLEANUP: {len(expired_keys)} expired entries removed")

            return len(expired_keys)

    def get_entry(self, key: str) -> CacheEntry[Any] | None:
        """Raw entry lookup, ignores expiry and counters."""
        return self._memory.get(key)

    def get_stats(self) -> "CacheStats":
        """Snapshot of cache statistics."""
        return CacheStats(
            size=len(self._memory),
            keys=list(self._memory),
            hits=self._hits,
            misses=self._misses,
            expirations=self._expirations,
        )

    def __len__(self) -> int:
        return len(self._memory)

    def __contains__(self, key: object) -> bool:
        return key in self._memory

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[CacheStore] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    size: int = 0
    keys: list[str] = field(default_factory=list)
    hits: int = 0
    misses: int = 0
    expirations: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "size": self.size,
            "keys": list(self.keys),
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
