from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable

import httpx
import pytest

from storefront.services import ApiClient


def run_async(coro):
    return asyncio.run(coro)


class FakeClock:
    """Manually advanced clock for cache expiry tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class SleepRecorder:
    """Stands in for asyncio.sleep and remembers requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def fresh(response: httpx.Response) -> httpx.Response:
    """Copy a scripted response so each request gets its own instance."""
    return httpx.Response(
        response.status_code, headers=response.headers, content=response.content
    )


class RecordingHandler:
    """MockTransport handler that replays scripted responses in order."""

    def __init__(self, *responses: httpx.Response | Exception | Callable):
        self._responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self._responses)) - 1
        response = self._responses[index]
        if isinstance(response, Exception):
            raise response
        if callable(response) and not isinstance(response, httpx.Response):
            return response(request)
        return fresh(response)

    @property
    def attempts(self) -> int:
        return len(self.requests)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


def make_client(
    handler,
    sleep=None,
    base_url: str = "https://api.example.com",
    **kwargs,
) -> ApiClient:
    return ApiClient(
        base_url=base_url,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=sleep or SleepRecorder(),
        **kwargs,
    )
