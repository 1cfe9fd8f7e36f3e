import asyncio

import pytest

from conftest import run_async
from storefront.services import RequestDeduplicator


def test_sequential_calls_each_run():
    async def scenario() -> None:
        dedup = RequestDeduplicator()
        calls = []

        async def produce():
            calls.append(1)
            return len(calls)

        assert await dedup.dedupe("k", produce) == 1
        assert await dedup.dedupe("k", produce) == 2
        assert dedup.get_in_flight_keys() == []

    run_async(scenario())


def test_different_keys_do_not_share():
    async def scenario() -> None:
        dedup = RequestDeduplicator()

        async def produce(value):
            await asyncio.sleep(0.01)
            return value

        results = await asyncio.gather(
            dedup.dedupe("a", lambda: produce("a")),
            dedup.dedupe("b", lambda: produce("b")),
        )
        assert results == ["a", "b"]
        assert dedup.get_stats().joined == 0

    run_async(scenario())


def test_cancelled_waiter_does_not_cancel_shared_call():
    async def scenario() -> None:
        dedup = RequestDeduplicator()
        release = asyncio.Event()

        async def produce():
            await release.wait()
            return "done"

        first = asyncio.create_task(dedup.dedupe("k", produce))
        second = asyncio.create_task(dedup.dedupe("k", produce))
        await asyncio.sleep(0.01)

        first.cancel()
        release.set()

        assert await second == "done"
        with pytest.raises(asyncio.CancelledError):
            await first

    run_async(scenario())


def test_cancel_all_stops_in_flight_calls():
    async def scenario() -> None:
        dedup = RequestDeduplicator()

        async def never():
            await asyncio.Event().wait()

        waiter = asyncio.create_task(dedup.dedupe("k", never))
        await asyncio.sleep(0.01)

        assert dedup.get_in_flight_keys() == ["k"]
        assert await dedup.cancel_all() == 1
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert await dedup.cancel("k") is False

    run_async(scenario())


def test_forget_lets_next_caller_start_fresh():
    async def scenario() -> None:
        dedup = RequestDeduplicator()
        release = asyncio.Event()
        calls = []

        async def fetch():
            calls.append("k")
            await release.wait()
            return "value"

        first = asyncio.create_task(dedup.dedupe("k", fetch))
        await asyncio.sleep(0)

        assert await dedup.forget("k") is True
        assert dedup.get_in_flight_keys() == []
        assert await dedup.forget("k") is False

        second = asyncio.create_task(dedup.dedupe("k", fetch))
        await asyncio.sleep(0)
        release.set()

        assert await first == await second == "value"
        assert len(calls) == 2
        assert dedup.get_stats().started == 2

    run_async(scenario())
