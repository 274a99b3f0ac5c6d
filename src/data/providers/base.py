"""Common adapter result type and chain mapping helpers.

모든 어댑터는 예외를 경계 밖으로 던지지 않고 ProviderResult를 반환합니다.
실패 상태(error/unavailable/short_circuited)는 source="mock"으로 태그됩니다.

Rules Applied:
    - #23 Exception Handling: Adapter boundary converts errors into tagged results
    - #10 Python Standards: Generic dataclass, Modern typing
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

import httpx

from src.core.exceptions import NetworkError, ProviderError
from src.logging.context import get_provider_logger
from src.models.types import MOCK_SOURCE, ProviderName, ResultStatus

T = TypeVar("T")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
DEAD_ADDRESS = "0x000000000000000000000000000000000000dead"
BURN_ADDRESSES: frozenset[str] = frozenset({ZERO_ADDRESS, DEAD_ADDRESS})


@dataclass(frozen=True)
class ProviderResult(Generic[T]):
    """어댑터 호출 결과.

    Attributes:
        data: 정규화된 payload (실패 시 None)
        source: 데이터를 제공한 프로바이더 이름 또는 "mock"
        status: ok | empty | error | unavailable | short_circuited
        error: 실패 사유
    """

    data: T | None
    source: str
    status: ResultStatus
    error: str | None = None

    @property
    def ok(self) -> bool:
        """데이터가 있는 성공 결과."""
        return self.status == ResultStatus.OK

    @property
    def counts_as_failure(self) -> bool:
        """Circuit breaker 실패로 집계되는 결과."""
        return self.status == ResultStatus.ERROR

    @property
    def counts_as_success(self) -> bool:
        """Circuit breaker 성공으로 집계되는 결과 (빈 응답 포함)."""
        return self.status in (ResultStatus.OK, ResultStatus.EMPTY)

    @classmethod
    def success(cls, data: T, provider: ProviderName) -> ProviderResult[T]:
        return cls(data=data, source=provider.value, status=ResultStatus.OK)

    @classmethod
    def empty(cls, provider: ProviderName, data: T | None = None) -> ProviderResult[T]:
        return cls(data=data, source=provider.value, status=ResultStatus.EMPTY)

    @classmethod
    def failure(cls, error: str) -> ProviderResult[T]:
        return cls(data=None, source=MOCK_SOURCE, status=ResultStatus.ERROR, error=error)

    @classmethod
    def unavailable(cls, provider: ProviderName) -> ProviderResult[T]:
        return cls(
            data=None,
            source=MOCK_SOURCE,
            status=ResultStatus.UNAVAILABLE,
            error=f"{provider.value} API key not configured",
        )

    @classmethod
    def short_circuited(cls, key: str) -> ProviderResult[T]:
        return cls(
            data=None,
            source=MOCK_SOURCE,
            status=ResultStatus.SHORT_CIRCUITED,
            error=f"circuit open: {key}",
        )


def normalize_address(address: str) -> str:
    """주소 소문자 정규화 (앞뒤 공백 제거)."""
    return address.strip().lower()


def is_hex_address(value: str) -> bool:
    """20-byte 0x hex 주소 여부."""
    if len(value) != 42 or not value.startswith("0x"):  # noqa: PLR2004
        return False
    try:
        int(value[2:], 16)
    except ValueError:
        return False
    return True


# ==========================================================================
# Chain mappings
# ==========================================================================
COINGECKO_PLATFORMS: dict[str, str] = {
    "ethereum": "ethereum",
    "polygon": "polygon-pos",
    "base": "base",
    "arbitrum": "arbitrum-one",
    "bsc": "binance-smart-chain",
    "optimism": "optimistic-ethereum",
}

BITQUERY_NETWORKS: dict[str, str] = {
    "ethereum": "eth",
    "polygon": "matic",
    "base": "base",
    "arbitrum": "arbitrum",
    "bsc": "bsc",
    "optimism": "optimism",
}

DEXSCREENER_CHAINS: dict[str, str] = {
    "ethereum": "ethereum",
    "polygon": "polygon",
    "base": "base",
    "arbitrum": "arbitrum",
    "bsc": "bsc",
    "optimism": "optimism",
}

MORALIS_CHAINS: dict[str, str] = {
    "ethereum": "eth",
    "polygon": "polygon",
    "base": "base",
    "arbitrum": "arbitrum",
    "bsc": "bsc",
    "optimism": "optimism",
}

ETHERSCAN_CHAIN_IDS: dict[str, int] = {
    "ethereum": 1,
    "polygon": 137,
    "base": 8453,
    "arbitrum": 42161,
    "bsc": 56,
    "optimism": 10,
}


def map_chain(mapping: dict[str, str], chain: str, default: str) -> str:
    """체인 이름 → 프로바이더별 식별자 (알 수 없으면 default)."""
    return mapping.get(chain.lower(), default)


# ==========================================================================
# Adapter boundary
# ==========================================================================
ADAPTER_ERRORS: tuple[type[Exception], ...] = (
    ProviderError,
    httpx.HTTPError,
    ValueError,
    KeyError,
    TypeError,
    ArithmeticError,
    AttributeError,
)
"""어댑터 경계에서 포착하여 실패 결과로 변환하는 예외."""

HTTP_NOT_FOUND = 404


def is_not_found(exc: Exception) -> bool:
    """404 응답으로 인한 NetworkError 여부 (빈 결과로 취급)."""
    return isinstance(exc, NetworkError) and exc.context.get("status") == HTTP_NOT_FOUND


def failure_result(provider: ProviderName, operation: str, exc: Exception) -> ProviderResult[T]:
    """예외 → 태그된 결과.

    404는 "데이터 없음"(empty)으로, 그 외는 error로 변환합니다.

    Args:
        provider: 프로바이더
        operation: 작업 이름 (로그용)
        exc: 포착된 예외
    """
    if is_not_found(exc):
        return ProviderResult.empty(provider)
    get_provider_logger(provider.value, operation).warning(
        f"{provider.value}.{operation} failed: {type(exc).__name__}: {exc}"
    )
    return ProviderResult.failure(f"{type(exc).__name__}: {exc}")
