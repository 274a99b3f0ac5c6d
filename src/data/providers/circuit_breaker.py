"""Circuit breaker backed by a KeyValueStore.

연속 실패가 threshold에 도달하면 open_window 동안 circuit을 엽니다.
half-open 프로브 없이 closed/open 두 상태만 존재하며, open 상태는 TTL로
자동 만료됩니다 (blind expiry). 한 번의 성공은 실패 카운트를 즉시 초기화합니다.

Storage keys:
    - cb:<key>:failures  연속 실패 횟수
    - cb:<key>:open      open 표식 (TTL = open_window)

In-memory와 Redis 저장소가 동일한 키/의미론을 공유하므로 호출자는
어떤 저장소가 활성화되어 있는지 알 필요가 없습니다.

Rules Applied:
    - #10 Python Standards: Modern typing
    - #15 Logging Standards: State transitions logged
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

from loguru import logger

from src.core.exceptions import CacheBackendError
from src.data.providers.base import ProviderResult

if TYPE_CHECKING:
    from src.core.kv_store import KeyValueStore
    from src.models.types import ProviderName
    from src.monitoring.metrics import OperationalCounters

T = TypeVar("T")

DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_OPEN_WINDOW_SECONDS = 60.0


def _open_key(key: str) -> str:
    return f"cb:{key}:open"


def _fail_key(key: str) -> str:
    return f"cb:{key}:failures"


class CircuitBreaker:
    """키별 연속 실패 카운터 + open window.

    Args:
        store: 상태 저장소 (InMemoryKeyValueStore 또는 RedisKeyValueStore)
        threshold: circuit open까지 연속 실패 횟수
        open_window: open 유지 시간 (초)

    Example:
        >>> breaker = CircuitBreaker(InMemoryKeyValueStore())
        >>> if await breaker.is_open("moralis:top_holders"):
        ...     return degraded_result()
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        threshold: int = DEFAULT_FAILURE_THRESHOLD,
        open_window: float = DEFAULT_OPEN_WINDOW_SECONDS,
    ) -> None:
        self._store = store
        self._threshold = threshold
        self._open_window = open_window

    @property
    def threshold(self) -> int:
        """기본 실패 임계값."""
        return self._threshold

    @property
    def open_window(self) -> float:
        """기본 open 유지 시간 (초)."""
        return self._open_window

    async def is_open(self, key: str) -> bool:
        """circuit open 여부.

        open window는 circuit이 열리는 시점에 TTL로 고정됩니다.
        """
        return await self._store.get(_open_key(key)) is not None

    async def failures(self, key: str) -> int:
        """현재 연속 실패 횟수."""
        raw = await self._store.get(_fail_key(key))
        return int(raw) if raw else 0

    async def record_failure(
        self,
        key: str,
        threshold: int | None = None,
        open_window: float | None = None,
    ) -> bool:
        """실패 기록.

        Args:
            key: circuit 키 (예: "moralis:top_holders")
            threshold: 임계값 override
            open_window: open 유지 시간 override (초)

        Returns:
            이번 실패로 circuit이 열렸으면 True
        """
        limit = threshold if threshold is not None else self._threshold
        window = open_window if open_window is not None else self._open_window
        count = await self._store.incr(_fail_key(key))
        if count < limit:
            return False
        await self._store.set(_open_key(key), "1", ttl_seconds=window)
        await self._store.delete(_fail_key(key))
        logger.warning(f"Circuit opened for {key} after {count} consecutive failures ({window:.0f}s)")
        return True

    async def record_success(self, key: str) -> None:
        """성공 기록: 실패 카운트와 open 상태를 즉시 초기화."""
        await self._store.delete(_open_key(key), _fail_key(key))

    async def reset(self, key: str) -> None:
        """관리용 초기화."""
        await self._store.delete(_open_key(key), _fail_key(key))
        logger.info(f"Circuit reset for {key}")


class ProviderGuard:
    """`<provider>:<operation>` 단위 circuit breaker 가드.

    - open: 호출 생략, `providers.<name>.shortcircuited` 증가, short_circuited 결과
    - error 결과: 실패 기록
    - ok / empty 결과: 성공 기록 (즉시 초기화)
    - unavailable 결과: 상태 변경 없음

    저장소 오류는 경고 후 무시합니다 (가드가 호출을 막지 않음).

    Args:
        breaker: CircuitBreaker
        counters: 운영 카운터
    """

    def __init__(self, breaker: CircuitBreaker, counters: OperationalCounters) -> None:
        self._breaker = breaker
        self._counters = counters

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    async def call(
        self,
        provider: ProviderName,
        operation: str,
        fn: Callable[[], Awaitable[ProviderResult[T]]],
    ) -> ProviderResult[T]:
        """가드된 어댑터 호출."""
        key = f"{provider.value}:{operation}"
        try:
            is_open = await self._breaker.is_open(key)
        except CacheBackendError as e:
            logger.warning(f"Circuit state unavailable for {key}: {e}")
            is_open = False
        if is_open:
            self._counters.inc(f"providers.{provider.value}.shortcircuited")
            return ProviderResult.short_circuited(key)

        result = await fn()
        try:
            if result.counts_as_failure:
                await self._breaker.record_failure(key)
            elif result.counts_as_success:
                await self._breaker.record_success(key)
        except CacheBackendError as e:
            logger.warning(f"Circuit state not recorded for {key}: {e}")
        return result
