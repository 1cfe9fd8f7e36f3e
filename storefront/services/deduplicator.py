"""
RequestDeduplicator - Single-flight execution of concurrent producers.

When several coroutines miss the cache for the same key at once, only the
first one runs the producer. The others await the same task and receive the
same result or the same exception.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass
class DeduplicatorStats:
    """Statistics for request deduplication."""

    started: int = 0  # producers actually run
    joined: int = 0  # callers that reused an in-flight producer
    in_flight: int = 0

    @property
    def dedup_rate(self) -> float:
        total = self.started + self.joined
        if total == 0:
            return 0.0
        return self.joined / total

    def to_dict(self) -> dict[str, Any]:
        return {
            "started": self.started,
            "joined": self.joined,
            "in_flight": self.in_flight,
            "dedup_rate": f"{self.dedup_rate:.2%}",
        }


class RequestDeduplicator:
    """
    Shares one in-flight producer per key.

    Usage:
        dedup = RequestDeduplicator()

        data = await dedup.dedupe("products:all", lambda: client.get("/products"))
    """

    def __init__(self, debug: bool = False):
        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        self._lock = asyncio.Lock()
        self._debug = debug
        self._started = 0
        self._joined = 0

    async def dedupe(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Run ``request_fn`` unless a call for ``key`` is already running.

        Args:
            key: Identifier shared by equivalent calls
            request_fn: Zero-argument coroutine function

        Returns:
            Result of the (possibly shared) call
        """
        async with self._lock:
            task = self._in_flight.get(key)
            if task is not None:
                self._joined += 1
                self._log(f"JOIN: {key}")
            else:
                self._started += 1
                self._log(f"START: {key}")
                task = asyncio.create_task(self._run(key, request_fn))
                self._in_flight[key] = task

        # shield: one waiter being cancelled must not cancel the shared call
        return await asyncio.shield(task)

    async def _run(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        try:
            return await request_fn()
        finally:
            async with self._lock:
                if self._in_flight.get(key) is asyncio.current_task():
                    del self._in_flight[key]
            self._log(f"DONE: {key}")

    async def forget(self, key: str) -> bool:
        """Detach an in-flight call so the next caller starts a new one."""
        async with self._lock:
            task = self._in_flight.pop(key, None)
        if task is None:
            return False
        self._log(f"FORGET: {key}")
        return True

    async def cancel(self, key: str) -> bool:
        """Cancel an in-flight call."""
        async with self._lock:
            task = self._in_flight.pop(key, None)
        if task is None:
            return False
        task.cancel()
        self._log(f"CANCEL: {key}")
        return True

    async def cancel_all(self) -> int:
        """Cancel every in-flight call."""
        async with self._lock:
            tasks = list(self._in_flight.values())
            self._in_flight.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            self._log(f"CANCEL_ALL: {len(tasks)} calls cancelled")
        return len(tasks)

    def get_in_flight_keys(self) -> list[str]:
        return list(self._in_flight)

    def get_stats(self) -> DeduplicatorStats:
        return DeduplicatorStats(
            started=self._started,
            joined=self._joined,
            in_flight=len(self._in_flight),
        )

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[Deduplicator] {message}")
