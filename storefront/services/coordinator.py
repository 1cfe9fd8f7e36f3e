"""
CacheCoordinator - cache-aside on top of CacheStore.
"""

from datetime import timedelta
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from storefront.services.cache import CacheStore
from storefront.services.deduplicator import RequestDeduplicator

T = TypeVar("T")

_MISSING = object()


class CacheCoordinator:
    """
    Serve from the cache when fresh, otherwise run the producer and store it.

    Concurrent misses for the same key share one producer call. Failures are
    never cached: the exception reaches every waiter and the next call starts
    over.

    Usage:
        coordinator = CacheCoordinator(CacheStore())

        products = await coordinator.get_or_compute(
            "products:all",
            CacheTTL.LONG,
            lambda: fetch_products(),
        )

        # after a product update
        await coordinator.invalidate_by_pattern("products:")
    """

    def __init__(
        self,
        store: CacheStore,
        deduplicator: RequestDeduplicator | None = None,
        debug: bool = False,
    ):
        self.store = store
        self._deduplicator = deduplicator or RequestDeduplicator(debug=debug)
        self._debug = debug
        # bumped when a key is invalidated while its producer is running
        self._generations: dict[str, int] = {}

    async def get_or_compute(
        self,
        key: str,
        ttl: timedelta,
        producer: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Return the cached value for ``key`` or compute and cache it.

        Args:
            key: Cache key
            ttl: Lifetime of a freshly computed value
            producer: Zero-argument coroutine function doing the slow fetch

        Raises:
            Whatever ``producer`` raises, untouched
        """
        cached = await self.store.get(key, _MISSING)
        if cached is not _MISSING:
            return cached

        async def compute() -> T:
            generation = self._generations.get(key, 0)
            result = await producer()
            if self._generations.get(key, 0) == generation:
                await self.store.set(key, result, ttl)
            elif self._debug:
                logger.debug(f"[Coordinator] DISCARD: {key} invalidated mid-flight")
            return result

        return await self._deduplicator.dedupe(key, compute)

    async def invalidate(self, key: str) -> bool:
        """Drop a single key."""
        await self._detach_in_flight(lambda k: k == key)
        return await self.store.delete(key)

    async def invalidate_by_pattern(self, prefix: str) -> int:
        """Drop every key starting with ``prefix``."""
        await self._detach_in_flight(lambda k: k.startswith(prefix))
        count = await self.store.invalidate_prefix(prefix)
        if count:
            logger.info(f"Invalidated {count} cache entries with prefix '{prefix}'")
        return count

    async def _detach_in_flight(self, matches: Callable[[str], bool]) -> None:
        """Stop running producers for matching keys from writing to the store."""
        for key in self._deduplicator.get_in_flight_keys():
            if matches(key):
                self._generations[key] = self._generations.get(key, 0) + 1
                await self._deduplicator.forget(key)

    def get_health_status(self) -> dict[str, Any]:
        return {
            "cache": self.store.get_stats().to_dict(),
            "deduplicator": self._deduplicator.get_stats().to_dict(),
        }
