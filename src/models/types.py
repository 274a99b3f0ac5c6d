"""공용 타입 정의.

이 모듈은 여러 레이어에서 공통으로 사용되는 타입(Enum)을 정의합니다.
Providers, Analytics, Snapshot 등 다양한 모듈에서 순환 참조 없이 사용할 수 있습니다.

Rules Applied:
    - #10 Python Standards: Modern typing (X | None, list[])
    - #01 Project Structure: Dependency flow (Models can be imported by all layers)
"""

from enum import Enum


class ProviderName(str, Enum):
    """외부 데이터 프로바이더 식별자.

    Circuit breaker / rate limiter 레지스트리의 키로도 사용됩니다.
    """

    MORALIS = "moralis"
    BITQUERY = "bitquery"
    DEXSCREENER = "dexscreener"
    COINGECKO = "coingecko"
    THEGRAPH = "thegraph"
    DUNE = "dune"
    ETHERSCAN = "etherscan"


HOLDER_PROVIDERS: frozenset[ProviderName] = frozenset({ProviderName.MORALIS, ProviderName.BITQUERY})
"""Holder 리스트를 제공할 수 있는 프로바이더."""


class TimeRange(str, Enum):
    """대시보드 시간 범위.

    `all`은 120일 윈도우로 매핑됩니다 (무제한 쿼리는 빈 결과를 유발).
    """

    H24 = "24h"
    D7 = "7d"
    D30 = "30d"
    D90 = "90d"
    ALL = "all"

    @property
    def days(self) -> int:
        """시리즈 조회 일수."""
        return _RANGE_DAYS[self]


_RANGE_DAYS: dict[TimeRange, int] = {
    TimeRange.H24: 2,
    TimeRange.D7: 7,
    TimeRange.D30: 30,
    TimeRange.D90: 90,
    TimeRange.ALL: 120,
}


class HolderTag(str, Enum):
    """Holder 주소 분류 태그."""

    BURN = "burn"
    LP = "lp"
    EXCHANGE = "exchange"
    TREASURY = "treasury"
    TIMELOCK = "timelock"


class ResultStatus(str, Enum):
    """프로바이더 호출 결과 상태.

    - OK: 데이터 있음
    - EMPTY: 호출 성공, 데이터 없음
    - ERROR: 네트워크/파싱 실패 (circuit breaker 실패로 집계)
    - UNAVAILABLE: API 키 미설정 (네트워크 호출 없음)
    - SHORT_CIRCUITED: circuit open으로 호출 생략
    """

    OK = "ok"
    EMPTY = "empty"
    ERROR = "error"
    UNAVAILABLE = "unavailable"
    SHORT_CIRCUITED = "short_circuited"


MOCK_SOURCE = "mock"
SYNTHETIC_SOURCE = "synthetic"
