"""Process runtime: 설정 기반 레지스트리 조립.

kv store, rate limiter, circuit breaker, 카운터, 프로바이더 클라이언트,
어댑터, 서비스, DB, 오케스트레이터를 프로세스당 한 번 생성합니다.
저장소 선택(in-memory / Redis)은 시작 시 한 번 결정되며 이후 바뀌지 않습니다.

Example:
    >>> async with Runtime(get_settings()) as rt:
    ...     await rt.orchestrator.refresh_active_projects(projects)
"""

from __future__ import annotations

from contextlib import AsyncExitStack
from typing import TYPE_CHECKING

from loguru import logger

from src.analytics.assembler import MetricAssembler
from src.analytics.holders import HoldersService
from src.analytics.provider_service import ProviderService
from src.core.kv_store import create_kv_store
from src.data.providers.bitquery import BitqueryAdapter
from src.data.providers.circuit_breaker import CircuitBreaker, ProviderGuard
from src.data.providers.client import AsyncProviderClient
from src.data.providers.coingecko import CoinGeckoAdapter
from src.data.providers.dexscreener import DexscreenerAdapter
from src.data.providers.dune import DuneAdapter
from src.data.providers.etherscan import EtherscanAdapter
from src.data.providers.moralis import MoralisAdapter
from src.data.providers.rate_limiter import RateLimiterRegistry
from src.data.providers.rpc import Erc20Reader
from src.data.providers.thegraph import TheGraphAdapter
from src.models.types import ProviderName
from src.monitoring.metrics import OperationalCounters, PrometheusProviderCallback
from src.snapshot.database import Database
from src.snapshot.orchestrator import SnapshotOrchestrator
from src.snapshot.store import SnapshotStore

if TYPE_CHECKING:
    import httpx

    from src.config.settings import DashboardSettings
    from src.core.kv_store import KeyValueStore

class Runtime:
    """설정 → 연결된 서비스 그래프 (async context manager).

    Args:
        settings: DashboardSettings
        transport: httpx transport override (테스트에서 MockTransport 주입)
    """

    def __init__(
        self,
        settings: DashboardSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._stack = AsyncExitStack()
        self._readers: dict[str, Erc20Reader] = {}

        self.kv_store: KeyValueStore = create_kv_store(settings)
        self.limiter = RateLimiterRegistry()
        self.counters = OperationalCounters(self.kv_store if settings.redis_url else None)
        self.breaker = CircuitBreaker(
            self.kv_store,
            threshold=settings.breaker_threshold,
            open_window=settings.breaker_window_seconds,
        )
        self.guard = ProviderGuard(self.breaker, self.counters)
        self.database = Database(settings.database_path)
        self.store = SnapshotStore(self.database)

        callback = PrometheusProviderCallback()
        self._clients: dict[str, AsyncProviderClient] = {}
        for provider in ProviderName:
            self._clients[provider.value] = self._make_client(provider.value, callback)

        self.moralis = MoralisAdapter(
            self._clients[ProviderName.MORALIS.value],
            settings.api_key(ProviderName.MORALIS),
            self.counters,
            max_pages=settings.moralis_max_pages,
        )
        self.bitquery = BitqueryAdapter(
            self._clients[ProviderName.BITQUERY.value],
            settings.api_key(ProviderName.BITQUERY),
            self.counters,
        )
        self.dexscreener = DexscreenerAdapter(self._clients[ProviderName.DEXSCREENER.value])
        self.coingecko = CoinGeckoAdapter(
            self._clients[ProviderName.COINGECKO.value],
            settings.api_key(ProviderName.COINGECKO),
        )
        self.thegraph = TheGraphAdapter(
            self._clients[ProviderName.THEGRAPH.value],
            settings.api_key(ProviderName.THEGRAPH),
            self.counters,
            subgraphs=settings.thegraph_subgraphs or None,
        )
        self.dune = DuneAdapter(
            self._clients[ProviderName.DUNE.value],
            settings.api_key(ProviderName.DUNE),
            self.counters,
            holders_query_id=settings.dune_holders_query_id,
            volume_query_id=settings.dune_volume_query_id,
        )
        self.etherscan = EtherscanAdapter(
            self._clients[ProviderName.ETHERSCAN.value],
            settings.api_key(ProviderName.ETHERSCAN),
            self.counters,
        )

        self.holders = HoldersService(
            priority=settings.holders_provider_priority,
            moralis=self.moralis,
            bitquery=self.bitquery,
            dexscreener=self.dexscreener,
            rpc=self.reader_for,
            guard=self.guard,
        )
        self.providers = ProviderService(
            holders=self.holders,
            moralis=self.moralis,
            bitquery=self.bitquery,
            dexscreener=self.dexscreener,
            coingecko=self.coingecko,
            dune=self.dune,
            etherscan=self.etherscan,
            guard=self.guard,
            counters=self.counters,
        )
        self.assembler = MetricAssembler(
            providers=self.providers,
            holders=self.holders,
            thegraph=self.thegraph,
            dune=self.dune,
            guard=self.guard,
        )
        self.orchestrator = SnapshotOrchestrator(self.store, self.assembler, self.counters)

    @property
    def settings(self) -> DashboardSettings:
        return self._settings

    def _make_client(self, name: str, callback: PrometheusProviderCallback) -> AsyncProviderClient:
        settings = self._settings
        price_provider = name == ProviderName.COINGECKO.value
        return AsyncProviderClient(
            name,
            self.limiter,
            self.counters,
            timeout=settings.request_timeout,
            max_attempts=settings.retry_attempts if price_provider else 1,
            backoff_base=settings.retry_base_delay,
            metrics_callback=callback,
            transport=self._transport,
            redact=self._secrets(name),
        )

    def _secrets(self, name: str) -> tuple[str, ...]:
        """URL에 포함되는 비밀 값 (에러 메시지 마스킹 대상)."""
        settings = self._settings
        if name == ProviderName.THEGRAPH.value:
            return (settings.api_key(ProviderName.THEGRAPH),)
        if name == ProviderName.ETHERSCAN.value:
            return (settings.api_key(ProviderName.ETHERSCAN),)
        return ()

    def reader_for(self, chain: str) -> Erc20Reader:
        """체인별 ERC-20 RPC reader (체인당 1개 캐시)."""
        chain = chain.lower()
        reader = self._readers.get(chain)
        if reader is None:
            reader = Erc20Reader(
                self._settings.resolve_rpc_url(chain),
                self.limiter,
                self.counters,
                timeout=self._settings.request_timeout,
            )
            self._readers[chain] = reader
        return reader

    async def __aenter__(self) -> Runtime:
        await self._stack.__aenter__()
        try:
            await self._stack.enter_async_context(self.database)
            for client in self._clients.values():
                await self._stack.enter_async_context(client)
        except BaseException:
            await self._stack.aclose()
            raise
        logger.info(
            f"Runtime ready (db={self.database.path}, "
            f"kv={'redis' if self._settings.redis_url else 'memory'})"
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        try:
            await self.counters.flush()
        finally:
            for reader in self._readers.values():
                await reader.close()
            await self._stack.aclose()
            await self.kv_store.close()
