import asyncio
from datetime import timedelta

import pytest

from conftest import run_async
from storefront.services import (
    CacheCoordinator,
    CacheStore,
    CacheTTL,
    NetworkError,
    RequestDeduplicator,
)


class CountingProducer:
    def __init__(self, value="fresh"):
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.value


def test_hit_skips_producer(clock):
    async def scenario() -> None:
        coordinator = CacheCoordinator(CacheStore(clock=clock))
        producer = CountingProducer([{"id": "p1"}])

        first = await coordinator.get_or_compute("products:all", CacheTTL.LONG, producer)
        clock.advance(minutes=4)
        second = await coordinator.get_or_compute("products:all", CacheTTL.LONG, producer)

        assert first == second == [{"id": "p1"}]
        assert producer.calls == 1

    run_async(scenario())


def test_expired_value_is_recomputed(clock):
    async def scenario() -> None:
        coordinator = CacheCoordinator(CacheStore(clock=clock))
        producer = CountingProducer()

        await coordinator.get_or_compute("k", timedelta(seconds=5), producer)
        clock.advance(seconds=5)
        await coordinator.get_or_compute("k", timedelta(seconds=5), producer)

        assert producer.calls == 2

    run_async(scenario())


def test_cached_none_counts_as_hit(clock):
    async def scenario() -> None:
        coordinator = CacheCoordinator(CacheStore(clock=clock))
        producer = CountingProducer(value=None)

        assert await coordinator.get_or_compute("k", CacheTTL.SHORT, producer) is None
        assert await coordinator.get_or_compute("k", CacheTTL.SHORT, producer) is None
        assert producer.calls == 1

    run_async(scenario())


def test_failures_are_not_cached(clock):
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise NetworkError("upstream unreachable")
        return "recovered"

    async def scenario() -> None:
        store = CacheStore(clock=clock)
        coordinator = CacheCoordinator(store)

        with pytest.raises(NetworkError):
            await coordinator.get_or_compute("k", CacheTTL.SHORT, flaky)
        assert "k" not in store

        assert await coordinator.get_or_compute("k", CacheTTL.SHORT, flaky) == "recovered"
        assert len(calls) == 2

    run_async(scenario())


def test_concurrent_misses_share_one_producer_call(clock):
    async def scenario() -> None:
        release = asyncio.Event()
        calls = []

        async def slow():
            calls.append(1)
            await release.wait()
            return "shared"

        dedup = RequestDeduplicator()
        coordinator = CacheCoordinator(CacheStore(clock=clock), deduplicator=dedup)

        tasks = [
            asyncio.create_task(coordinator.get_or_compute("k", CacheTTL.SHORT, slow))
            for _ in range(5)
        ]
        await asyncio.sleep(0.01)
        release.set()
        results = await asyncio.gather(*tasks)

        assert results == ["shared"] * 5
        assert len(calls) == 1
        stats = dedup.get_stats()
        assert (stats.started, stats.joined, stats.in_flight) == (1, 4, 0)

    run_async(scenario())


def test_concurrent_waiters_all_see_the_failure(clock):
    async def scenario() -> None:
        release = asyncio.Event()

        async def failing():
            await release.wait()
            raise NetworkError("boom")

        coordinator = CacheCoordinator(CacheStore(clock=clock))
        tasks = [
            asyncio.create_task(coordinator.get_or_compute("k", CacheTTL.SHORT, failing))
            for _ in range(3)
        ]
        await asyncio.sleep(0.01)
        release.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(result, NetworkError) for result in results)

    run_async(scenario())


def test_invalidate_by_pattern(clock):
    async def scenario() -> None:
        store = CacheStore(clock=clock)
        coordinator = CacheCoordinator(store)
        for key in ("products:all", "products:inStock", "orders:1"):
            await coordinator.get_or_compute(key, CacheTTL.LONG, CountingProducer())

        assert await coordinator.invalidate_by_pattern("products:") == 2
        assert store.get_stats().keys == ["orders:1"]

        assert await coordinator.invalidate("orders:1") is True
        assert len(store) == 0

    run_async(scenario())


def test_health_status_reports_cache_and_dedup(clock):
    async def scenario() -> None:
        coordinator = CacheCoordinator(CacheStore(clock=clock))
        await coordinator.get_or_compute("k", CacheTTL.SHORT, CountingProducer())

        status = coordinator.get_health_status()
        assert status["cache"]["size"] == 1
        assert status["deduplicator"]["started"] == 1

    run_async(scenario())


def test_producer_in_flight_during_invalidation_does_not_repopulate(clock):
    async def scenario() -> None:
        store = CacheStore(clock=clock)
        coordinator = CacheCoordinator(store)
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_listing():
            started.set()
            await release.wait()
            return "before update"

        pending = asyncio.create_task(
            coordinator.get_or_compute("products:all", CacheTTL.LONG, slow_listing)
        )
        await started.wait()

        await coordinator.invalidate_by_pattern("products:")
        release.set()

        assert await pending == "before update"
        assert "products:all" not in store

        fresh = CountingProducer("after update")
        value = await coordinator.get_or_compute("products:all", CacheTTL.LONG, fresh)
        assert value == "after update"
        assert fresh.calls == 1
        assert await store.get("products:all") == "after update"

    run_async(scenario())


def test_invalidate_detaches_single_in_flight_key(clock):
    async def scenario() -> None:
        store = CacheStore(clock=clock)
        coordinator = CacheCoordinator(store)
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow():
            started.set()
            await release.wait()
            return "stale"

        pending = asyncio.create_task(
            coordinator.get_or_compute("inventory:p1", CacheTTL.SHORT, slow)
        )
        await started.wait()

        assert await coordinator.invalidate("inventory:p1") is False
        release.set()
        await pending

        assert len(store) == 0

    run_async(scenario())
