"""Provider adapter fixtures: httpx.MockTransport 기반 클라이언트 팩토리."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import httpx
import pytest

from src.data.providers.client import AsyncProviderClient
from src.data.providers.rate_limiter import RateLimiterRegistry
from src.monitoring.metrics import OperationalCounters

Handler = Callable[[httpx.Request], httpx.Response]
MockClient = Callable[[str, Handler], AbstractAsyncContextManager[AsyncProviderClient]]


@pytest.fixture
def mock_client(counters: OperationalCounters) -> MockClient:
    """`async with mock_client("moralis", handler) as client:` 형태의 팩토리."""

    @asynccontextmanager
    async def factory(provider: str, handler: Handler) -> AsyncIterator[AsyncProviderClient]:
        client = AsyncProviderClient(
            provider,
            RateLimiterRegistry(),
            counters,
            transport=httpx.MockTransport(handler),
        )
        async with client:
            yield client

    return factory
