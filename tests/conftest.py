"""Pytest configuration and fixtures for cache_inflight tests."""
import asyncio
from typing import Generator

import httpx
import pytest

from cache_inflight import InflightRegistry, MemoryEvictionStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MockAsyncTransport(httpx.AsyncBaseTransport):
    """Mock async transport for testing."""

    def __init__(
        self,
        response_status: int = 200,
        response_content: bytes = b'{"success": true}',
        delay_seconds: float = 0.0,
        response_headers: dict | None = None,
    ) -> None:
        self.response_status = response_status
        self.response_content = response_content
        self.response_headers = response_headers or {"content-type": "application/json"}
        self.delay_seconds = delay_seconds
        self.requests: list[httpx.Request] = []
        self.closed = False

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Record the request and return a mock response."""
        self.requests.append(request)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        return httpx.Response(
            status_code=self.response_status,
            headers=self.response_headers,
            content=self.response_content,
        )

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryEvictionStore:
    """Create a small memory store driven by the fake clock."""
    return MemoryEvictionStore(max_size=3, timer=clock)


@pytest.fixture
def registry(store: MemoryEvictionStore) -> Generator[InflightRegistry, None, None]:
    """Create a registry over the test store."""
    reg = InflightRegistry(store)
    yield reg
    reg.close()
