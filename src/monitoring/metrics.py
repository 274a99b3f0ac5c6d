"""Operational counters + Prometheus metrics.

코어는 OperationalCounters에 카운터를 기록만 하며 (passive sink), 값을 읽어
동작을 바꾸지 않습니다. 모든 증가분은 Prometheus Counter에도 반영되고,
Redis가 설정된 경우 공유 저장소의 `metrics:<key>`에 fire-and-forget으로
미러링됩니다.

Exposition: `render_prometheus()` (text format), `start_metrics_server(port)` (`/metrics`).

Counter keys:
    - providers.<name>.calls | errors | missing_key | shortcircuited
    - providers.<name>.latency_ms.<bucket>
    - providers.{holders,tx,price,liquidity}.fallbacks
    - snapshots.refresh.{success,error}.<family>
    - snapshots.synthetic.<family>

Rules Applied:
    - Prometheus naming: dashline_ prefix
    - ProviderMetricsCallback: Protocol (관심사 분리)
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from loguru import logger
from prometheus_client import REGISTRY, Counter, Gauge, Histogram, generate_latest, start_http_server

if TYPE_CHECKING:
    from src.core.kv_store import KeyValueStore

METRICS_KEY_PREFIX = "metrics:"

# ==========================================================================
# Prometheus metrics
# ==========================================================================
ops_events_counter = Counter(
    "dashline_ops_events_total",
    "Operational counter increments by event key",
    ["event"],
)
snapshot_refresh_counter = Counter(
    "dashline_snapshot_refresh_total",
    "Snapshot refresh results by metric family",
    ["family", "status"],  # status: success | error | synthetic
)
provider_calls_counter = Counter(
    "dashline_provider_calls_total",
    "Provider HTTP call attempts",
    ["provider", "status"],  # status: success | failure | rate_limited
)
provider_latency_histogram = Histogram(
    "dashline_provider_latency_seconds",
    "Provider HTTP call latency",
    ["provider"],
    buckets=(0.1, 0.3, 1.0, 3.0, 10.0, 30.0),
)
ops_counter_gauge = Gauge(
    "dashline_ops_counter",
    "Aggregated operational counter values (all instances when Redis is shared)",
    ["key"],
)

# (upper bound ms, label)
_LATENCY_BUCKETS: tuple[tuple[float, str], ...] = (
    (100, "lt100"),
    (300, "lt300"),
    (1000, "lt1000"),
    (3000, "lt3000"),
    (10000, "lt10000"),
)


def latency_bucket(elapsed_ms: float) -> str:
    """지연시간(ms) → 카운터 버킷 라벨.

    Example:
        >>> latency_bucket(250)
        'lt300'
        >>> latency_bucket(15000)
        'gte10000'
    """
    for bound, label in _LATENCY_BUCKETS:
        if elapsed_ms < bound:
            return label
    return "gte10000"


# ==========================================================================
# ProviderMetricsCallback: 프로바이더 HTTP 계측 Protocol
# ==========================================================================
@runtime_checkable
class ProviderMetricsCallback(Protocol):
    """프로바이더 HTTP 호출 메트릭 콜백 Protocol.

    AsyncProviderClient에 주입하여 관심사 분리.
    """

    def on_call(self, provider: str, duration: float, status: str) -> None:
        """호출 결과 기록.

        Args:
            provider: 프로바이더 이름 (moralis, bitquery, ...)
            duration: 소요 시간 (초)
            status: "success" | "failure" | "rate_limited"
        """
        ...


class PrometheusProviderCallback:
    """Prometheus 기반 프로바이더 메트릭 콜백 구현."""

    def on_call(self, provider: str, duration: float, status: str) -> None:
        """호출 결과를 Prometheus 메트릭으로 기록."""
        provider_calls_counter.labels(provider=provider, status=status).inc()
        provider_latency_histogram.labels(provider=provider).observe(duration)


# ==========================================================================
# OperationalCounters
# ==========================================================================
class OperationalCounters:
    """프로세스 로컬 운영 카운터 (선택적 공유 저장소 미러링).

    Args:
        store: 설정 시 `metrics:<key>`로 증가분을 미러링 (Redis 배포)

    Example:
        >>> counters = OperationalCounters()
        >>> counters.inc("providers.moralis.calls")
        >>> counters.get("providers.moralis.calls")
        1
    """

    def __init__(self, store: KeyValueStore | None = None) -> None:
        self._counts: dict[str, int] = {}
        self._store = store
        self._pending: set[asyncio.Task[object]] = set()

    def inc(self, key: str, by: int = 1) -> None:
        """카운터 증가."""
        self._counts[key] = self._counts.get(key, 0) + by
        ops_events_counter.labels(event=key).inc(by)
        self._observe_refresh(key, by)
        if self._store is not None:
            self._mirror(self._store.incr(f"{METRICS_KEY_PREFIX}{key}", by))

    def get(self, key: str) -> int:
        """로컬 카운터 값 (없으면 0)."""
        return self._counts.get(key, 0)

    def reset(self, key: str | None = None) -> None:
        """카운터 초기화 (key=None이면 전체)."""
        if key is not None:
            self._counts.pop(key, None)
            if self._store is not None:
                self._mirror(self._store.delete(f"{METRICS_KEY_PREFIX}{key}"))
            return
        self._counts.clear()
        if self._store is not None:
            self._mirror(self._clear_store(self._store))

    async def snapshot(self) -> dict[str, int]:
        """모든 카운터 스냅샷.

        공유 저장소가 있으면 저장소 값(모든 인스턴스 합계)이 로컬 값을 덮어씁니다.
        저장소 조회 실패 시 로컬 값만 반환합니다.
        """
        await self.flush()
        snap = dict(self._counts)
        if self._store is None:
            return snap
        try:
            for full_key in await self._store.scan(f"{METRICS_KEY_PREFIX}*"):
                raw = await self._store.get(full_key)
                snap[full_key.removeprefix(METRICS_KEY_PREFIX)] = int(raw) if raw else 0
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Counter snapshot fell back to local values: {e}")
        return snap

    async def flush(self) -> None:
        """대기 중인 미러링 작업 완료 대기."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    @staticmethod
    def _observe_refresh(key: str, by: int) -> None:
        parts = key.split(".")
        if len(parts) == 4 and parts[:2] == ["snapshots", "refresh"]:  # noqa: PLR2004
            snapshot_refresh_counter.labels(family=parts[3], status=parts[2]).inc(by)
        elif len(parts) == 3 and parts[:2] == ["snapshots", "synthetic"]:  # noqa: PLR2004
            snapshot_refresh_counter.labels(family=parts[2], status="synthetic").inc(by)

    def _mirror(self, coro: Coroutine[Any, Any, object]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # 이벤트 루프 밖 (CLI 동기 구간): 미러링 생략
            coro.close()
            return
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._on_mirror_done)

    def _on_mirror_done(self, task: asyncio.Task[object]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Counter mirror failed: {task.exception()}")

    @staticmethod
    async def _clear_store(store: KeyValueStore) -> None:
        keys = await store.scan(f"{METRICS_KEY_PREFIX}*")
        if keys:
            await store.delete(*keys)


# ==========================================================================
# Exposition
# ==========================================================================
def export_counter_snapshot(snapshot: dict[str, int]) -> None:
    """카운터 스냅샷 → `dashline_ops_counter{key}` gauge.

    Redis 배포에서는 모든 인스턴스 합계가 노출됩니다.
    """
    for key, value in snapshot.items():
        ops_counter_gauge.labels(key=key).set(value)


def render_prometheus() -> str:
    """기본 레지스트리의 Prometheus text exposition."""
    return generate_latest(REGISTRY).decode("utf-8")


def start_metrics_server(port: int) -> bool:
    """Prometheus HTTP exposition 서버 시작 (`/metrics`).

    Args:
        port: 리스닝 포트 (0 이하이면 비활성)

    Returns:
        서버를 시작했으면 True
    """
    if port <= 0:
        logger.info("Prometheus metrics server disabled (port=0)")
        return False
    start_http_server(port)
    logger.info("Prometheus metrics server started on port {}", port)
    return True
