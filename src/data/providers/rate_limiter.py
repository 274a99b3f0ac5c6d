"""Token-bucket rate limiter with a per-provider concurrency gate.

각 프로바이더 키마다 하나의 TokenBucket을 두고, 토큰(처리량)과 동시 실행 수를
함께 제한합니다. 버킷은 RateLimiterRegistry가 소유하며 최초 사용 시 생성되어
프로세스 수명 동안 유지됩니다.

Admission (매 체크 시 lazy refill):
    1. in_flight >= concurrency  → 대기열에 등록, 완료 시 깨어남
    2. tokens < 1                → 토큰 1개가 찰 때까지 sleep 후 재시도
    3. 그 외                      → 토큰 1개 소비, in_flight 증가 후 실행

Rules Applied:
    - #10 Python Standards: asyncio primitives, Modern typing
    - #23 Exception Handling: 호출 예외는 그대로 전파 (limiter는 fail-closed 하지 않음)
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from src.models.types import ProviderName

T = TypeVar("T")

# 토큰 대기 최소 간격 (초)
MIN_TOKEN_WAIT = 0.1


@dataclass(frozen=True)
class BucketPolicy:
    """버킷 정책.

    Attributes:
        capacity: 최대 토큰 수 (버스트 상한)
        refill_per_minute: 분당 충전 토큰 수 (정상 상태 처리량)
        concurrency: 최대 동시 실행 수
    """

    capacity: int
    refill_per_minute: float
    concurrency: int

    @property
    def refill_per_second(self) -> float:
        """초당 충전 토큰 수."""
        return self.refill_per_minute / 60.0


DEFAULT_BUCKET_POLICIES: dict[str, BucketPolicy] = {
    ProviderName.DEXSCREENER.value: BucketPolicy(capacity=60, refill_per_minute=60, concurrency=6),
    ProviderName.COINGECKO.value: BucketPolicy(capacity=50, refill_per_minute=50, concurrency=5),
    ProviderName.DUNE.value: BucketPolicy(capacity=5, refill_per_minute=5, concurrency=2),
    ProviderName.BITQUERY.value: BucketPolicy(capacity=5, refill_per_minute=5, concurrency=2),
    ProviderName.MORALIS.value: BucketPolicy(capacity=10, refill_per_minute=10, concurrency=2),
    ProviderName.THEGRAPH.value: BucketPolicy(capacity=30, refill_per_minute=30, concurrency=4),
    ProviderName.ETHERSCAN.value: BucketPolicy(capacity=5, refill_per_minute=300, concurrency=2),
    "rpc": BucketPolicy(capacity=20, refill_per_minute=600, concurrency=4),
}

FALLBACK_BUCKET_POLICY = BucketPolicy(capacity=10, refill_per_minute=30, concurrency=2)


class TokenBucket:
    """단일 키의 token bucket + concurrency gate.

    Args:
        policy: 버킷 정책
        clock: 단조 시계 (초). 테스트에서 주입 가능.

    Example:
        >>> bucket = TokenBucket(BucketPolicy(capacity=5, refill_per_minute=5, concurrency=2))
        >>> await bucket.acquire()
        >>> try:
        ...     ...
        ... finally:
        ...     bucket.release()
    """

    def __init__(self, policy: BucketPolicy, clock: Callable[[], float] = time.monotonic) -> None:
        self._policy = policy
        self._clock = clock
        self._tokens = float(policy.capacity)
        self._last_refill = clock()
        self._in_flight = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def policy(self) -> BucketPolicy:
        """버킷 정책."""
        return self._policy

    @property
    def tokens(self) -> float:
        """현재 토큰 수 (refill 반영)."""
        self._refill()
        return self._tokens

    @property
    def in_flight(self) -> int:
        """현재 실행 중인 호출 수."""
        return self._in_flight

    @property
    def queued(self) -> int:
        """동시성 대기 중인 호출 수."""
        return len(self._waiters)

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed <= 0:
            return
        self._tokens = min(
            float(self._policy.capacity),
            self._tokens + elapsed * self._policy.refill_per_second,
        )
        self._last_refill = now

    def _token_wait(self) -> float:
        """토큰 1개가 찰 때까지의 예상 대기 시간 (초)."""
        rate = self._policy.refill_per_second
        if rate <= 0:
            return MIN_TOKEN_WAIT
        return max(MIN_TOKEN_WAIT, (1.0 - self._tokens) / rate)

    def try_acquire(self) -> bool:
        """대기 없이 슬롯 획득 시도.

        Returns:
            획득 성공 시 True (반드시 release() 호출 필요)
        """
        self._refill()
        if self._in_flight >= self._policy.concurrency or self._tokens < 1:
            return False
        self._tokens -= 1
        self._in_flight += 1
        return True

    async def acquire(self) -> None:
        """슬롯을 획득할 때까지 대기 (try_acquire 실패 시 대기열 또는 토큰 sleep)."""
        while not self.try_acquire():
            if self._in_flight >= self._policy.concurrency:
                waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
                self._waiters.append(waiter)
                try:
                    await waiter
                except asyncio.CancelledError:
                    if waiter.done() and not waiter.cancelled():
                        # 깨어난 직후 취소되면 다음 대기자에게 양보
                        self._wake_next()
                    else:
                        self._remove_waiter(waiter)
                    raise
                continue
            await asyncio.sleep(self._token_wait())

    def release(self) -> None:
        """실행 완료: in_flight 감소 후 다음 대기자 깨움."""
        self._in_flight = max(0, self._in_flight - 1)
        self._wake_next()

    def _wake_next(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return

    def _remove_waiter(self, waiter: asyncio.Future[None]) -> None:
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass


class RateLimiterRegistry:
    """프로바이더 키 → TokenBucket 레지스트리.

    프로세스 시작 시 한 번 생성되어 필요한 컴포넌트에 주입됩니다.

    Example:
        >>> limiter = RateLimiterRegistry()
        >>> data = await limiter.run("moralis", lambda: client.get(url))
    """

    def __init__(
        self,
        policies: dict[str, BucketPolicy] | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._policies = dict(DEFAULT_BUCKET_POLICIES if policies is None else policies)
        self._clock = clock
        self._buckets: dict[str, TokenBucket] = {}

    @staticmethod
    def _key(key: ProviderName | str) -> str:
        return key.value if isinstance(key, ProviderName) else key

    def bucket(self, key: ProviderName | str) -> TokenBucket:
        """키에 해당하는 버킷 (최초 접근 시 생성)."""
        name = self._key(key)
        bucket = self._buckets.get(name)
        if bucket is None:
            policy = self._policies.get(name, FALLBACK_BUCKET_POLICY)
            bucket = TokenBucket(policy, clock=self._clock)
            self._buckets[name] = bucket
        return bucket

    async def run(self, key: ProviderName | str, fn: Callable[[], Awaitable[T]]) -> T:
        """버킷 슬롯을 획득한 뒤 fn 실행.

        Args:
            key: 프로바이더 키
            fn: 실행할 코루틴 팩토리

        Returns:
            fn의 반환값 (예외는 그대로 전파)
        """
        bucket = self.bucket(key)
        await bucket.acquire()
        try:
            return await fn()
        finally:
            bucket.release()
