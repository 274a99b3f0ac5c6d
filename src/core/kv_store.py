"""Key-value store capability interface.

Circuit breaker 상태와 운영 카운터 미러를 저장하는 공용 인터페이스입니다.
단일 프로세스 배포는 InMemoryKeyValueStore, 멀티 인스턴스 배포는
RedisKeyValueStore를 사용하며, 프로세스 시작 시 한 번만 선택합니다.

Rules Applied:
    - #10 Python Standards: Protocol, Modern typing
    - #23 Exception Handling: Backend errors wrapped in CacheBackendError
"""

from __future__ import annotations

import fnmatch
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import redis.asyncio as redis
from loguru import logger

from src.core.exceptions import CacheBackendError

if TYPE_CHECKING:
    from src.config.settings import DashboardSettings


@runtime_checkable
class KeyValueStore(Protocol):
    """비동기 key-value 저장소 인터페이스.

    두 구현체는 동일한 의미론을 가져야 합니다 (TTL 만료 후 키는 존재하지 않음).
    """

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def incr(self, key: str, by: int = 1) -> int: ...

    async def expire(self, key: str, ttl_seconds: float) -> bool: ...

    async def scan(self, pattern: str) -> list[str]: ...

    async def close(self) -> None: ...


class InMemoryKeyValueStore:
    """프로세스 로컬 key-value 저장소.

    TTL은 접근 시점에 지연 평가(lazy expiry)됩니다.

    Args:
        clock: 단조 증가 시계 (초). 테스트에서 주입 가능.

    Example:
        >>> store = InMemoryKeyValueStore()
        >>> await store.set("cb:moralis:top_holders:open", "1", ttl_seconds=60)
        >>> await store.get("cb:moralis:top_holders:open")
        '1'
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}

    def _live(self, key: str) -> tuple[str, float | None] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    async def get(self, key: str) -> str | None:
        entry = self._live(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._data[key] = (value, expires_at)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                del self._data[key]
                removed += 1
        return removed

    async def incr(self, key: str, by: int = 1) -> int:
        """정수 값 증가 (키가 없으면 0에서 시작, 기존 TTL 유지)."""
        entry = self._live(key)
        current, expires_at = entry if entry else ("0", None)
        try:
            value = int(current) + by
        except ValueError as e:
            msg = "Value is not an integer"
            raise CacheBackendError(msg, context={"key": key}) from e
        self._data[key] = (str(value), expires_at)
        return value

    async def expire(self, key: str, ttl_seconds: float) -> bool:
        entry = self._live(key)
        if entry is None:
            return False
        self._data[key] = (entry[0], self._clock() + ttl_seconds)
        return True

    async def scan(self, pattern: str) -> list[str]:
        """glob 패턴과 일치하는 살아있는 키 목록."""
        return sorted(k for k in list(self._data) if self._live(k) and fnmatch.fnmatchcase(k, pattern))

    async def close(self) -> None:
        self._data.clear()


class RedisKeyValueStore:
    """redis.asyncio 기반 공유 key-value 저장소.

    Args:
        client: redis.asyncio 클라이언트 (decode_responses=True)

    Example:
        >>> store = RedisKeyValueStore.from_url("redis://localhost:6379/0")
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisKeyValueStore:
        """URL로 클라이언트 생성."""
        return cls(redis.Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except redis.RedisError as e:
            raise CacheBackendError(str(e), context={"op": "get", "key": key}) from e

    async def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None:
        px = max(1, int(ttl_seconds * 1000)) if ttl_seconds is not None else None
        try:
            await self._client.set(key, value, px=px)
        except redis.RedisError as e:
            raise CacheBackendError(str(e), context={"op": "set", "key": key}) from e

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return int(await self._client.delete(*keys))
        except redis.RedisError as e:
            raise CacheBackendError(str(e), context={"op": "delete", "keys": keys}) from e

    async def incr(self, key: str, by: int = 1) -> int:
        try:
            return int(await self._client.incrby(key, by))
        except redis.RedisError as e:
            raise CacheBackendError(str(e), context={"op": "incr", "key": key}) from e

    async def expire(self, key: str, ttl_seconds: float) -> bool:
        try:
            return bool(await self._client.pexpire(key, max(1, int(ttl_seconds * 1000))))
        except redis.RedisError as e:
            raise CacheBackendError(str(e), context={"op": "expire", "key": key}) from e

    async def scan(self, pattern: str) -> list[str]:
        try:
            return sorted([key async for key in self._client.scan_iter(match=pattern)])
        except redis.RedisError as e:
            raise CacheBackendError(str(e), context={"op": "scan", "pattern": pattern}) from e

    async def close(self) -> None:
        await self._client.aclose()


def create_kv_store(settings: DashboardSettings) -> KeyValueStore:
    """설정에 따라 저장소 구현 선택 (프로세스 시작 시 1회).

    Args:
        settings: REDIS_URL이 설정되어 있으면 Redis, 아니면 in-memory

    Returns:
        KeyValueStore 구현체
    """
    if settings.redis_url:
        logger.info("Using Redis key-value store for breaker/counters")
        return RedisKeyValueStore.from_url(settings.redis_url)
    logger.info("Using in-memory key-value store (single instance)")
    return InMemoryKeyValueStore()
