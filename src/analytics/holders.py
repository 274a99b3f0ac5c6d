"""Holders service: provider-priority holder lists and share analytics.

Algorithm (summary):
    1. 설정된 우선순위대로 holder 프로바이더 호출, 1명 이상 반환한 첫 프로바이더 채택
    2. 모두 실패 → `partial=True`, `source="mock"` 빈 요약 (예외 아님)
    3. RPC로 decimals / totalSupply 조회 (실패 시 기본값 + supply_unknown)
    4. Dexscreener 풀 주소로 LP 집합 구성 (확실한 경우만, 실패 시 빈 집합)
    5. limit_top([10, 1000])으로 자른 **후** share 계산
    6. burn / lp 태그

Share 계산은 raw int 잔고를 Decimal로 나누어 float 정밀도 손실을 피합니다.

Rules Applied:
    - #23 Exception Handling: Never raises, degrades to partial/mock
    - #10 Python Standards: Modern typing
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from loguru import logger

from src.analytics import synthetic
from src.analytics.formatters import format_wei_to_decimal
from src.data.providers.base import BURN_ADDRESSES, ProviderResult
from src.data.providers.windows import DayWindow
from src.models.holders import HolderSeries, HoldersSummary, RawHolder, TopHolder
from src.models.types import MOCK_SOURCE, SYNTHETIC_SOURCE, HolderTag, ProviderName

if TYPE_CHECKING:
    from src.data.providers.bitquery import BitqueryAdapter
    from src.data.providers.circuit_breaker import ProviderGuard
    from src.data.providers.dexscreener import DexscreenerAdapter
    from src.data.providers.moralis import MoralisAdapter
    from src.data.providers.rpc import Erc20Reader

MIN_LIMIT_TOP = 10
MAX_LIMIT_TOP = 1000
DEFAULT_LIMIT_TOP = 200

_ZERO = Decimal(0)


def clamp_limit_top(limit_top: int | None) -> int:
    """limit_top을 [10, 1000]으로 제한 (None이면 200)."""
    value = DEFAULT_LIMIT_TOP if limit_top is None else limit_top
    return max(MIN_LIMIT_TOP, min(MAX_LIMIT_TOP, value))


def holder_tags(address: str, lp_addresses: frozenset[str]) -> frozenset[HolderTag]:
    """burn / lp 태그."""
    tags: set[HolderTag] = set()
    if address in BURN_ADDRESSES:
        tags.add(HolderTag.BURN)
    if address in lp_addresses:
        tags.add(HolderTag.LP)
    return frozenset(tags)


def compute_shares(
    holders: Sequence[RawHolder],
    decimals: int,
    total_supply: int,
    lp_addresses: Iterable[str] = (),
) -> list[TopHolder]:
    """Holder별 total supply / circulating supply 비중.

    - total_supply_share = balance / total_supply (공급량 0이면 0)
    - circulating_share = balance / max(0, supply - burn - lp), 분모 0이면 0, 항상 >= 0
    - burn / lp 합계는 전달된 (잘린) holder 집합 기준

    Args:
        holders: raw 잔고 holder 리스트 (이미 top-N으로 잘린 상태)
        decimals: 토큰 decimals (표시용 잔고 정규화)
        total_supply: 최소 단위 총 공급량 (온체인)
        lp_addresses: LP 풀 주소 집합 (소문자)

    Returns:
        입력 순서를 유지한 TopHolder 리스트

    Example:
        >>> holders = [RawHolder(address="0xabc", balance=9000)]
        >>> compute_shares(holders, 0, 12000)[0].total_supply_share
        0.75
    """
    lp_set = frozenset(a.lower() for a in lp_addresses)
    supply = Decimal(total_supply)
    burn_sum = sum((Decimal(h.balance) for h in holders if h.address in BURN_ADDRESSES), _ZERO)
    lp_sum = sum((Decimal(h.balance) for h in holders if h.address in lp_set), _ZERO)
    circulating = max(_ZERO, supply - burn_sum - lp_sum)

    result: list[TopHolder] = []
    for holder in holders:
        balance = Decimal(holder.balance)
        total_share = balance / supply if supply > 0 else _ZERO
        circ_share = balance / circulating if circulating > 0 else _ZERO
        result.append(
            TopHolder(
                address=holder.address,
                balance=float(format_wei_to_decimal(holder.balance, decimals, precision=decimals)),
                total_supply_share=float(max(_ZERO, total_share)),
                circulating_share=float(max(_ZERO, circ_share)),
                tags=holder_tags(holder.address, lp_set),
            )
        )
    return result


class HoldersService:
    """Holder 요약 / holder 시계열 서비스.

    Args:
        priority: holder 프로바이더 우선순위 (설정에서 1회 파싱)
        moralis: Moralis 어댑터
        bitquery: BitQuery 어댑터
        dexscreener: LP 주소 조회용 Dexscreener 어댑터
        rpc: 체인 → ERC-20 RPC reader
        guard: circuit breaker 가드
    """

    def __init__(
        self,
        *,
        priority: Sequence[ProviderName],
        moralis: MoralisAdapter,
        bitquery: BitqueryAdapter,
        dexscreener: DexscreenerAdapter,
        rpc: Callable[[str], Erc20Reader],
        guard: ProviderGuard,
    ) -> None:
        self._priority = tuple(priority)
        self._moralis = moralis
        self._bitquery = bitquery
        self._dexscreener = dexscreener
        self._rpc = rpc
        self._guard = guard

    @property
    def priority(self) -> tuple[ProviderName, ...]:
        return self._priority

    async def _fetch_holders(
        self, provider: ProviderName, contract: str, chain: str, limit_top: int
    ) -> tuple[list[RawHolder], int]:
        if provider == ProviderName.MORALIS:
            result = await self._guard.call(
                provider, "top_holders", lambda: self._moralis.top_holders(contract, chain)
            )
            holders = (result.data or []) if result.ok else []
            return holders, len(holders)
        if provider == ProviderName.BITQUERY:
            result = await self._guard.call(
                provider, "top_holders", lambda: self._bitquery.top_holders(contract, chain, limit_top)
            )
            holders = (result.data or []) if result.ok else []
            if not holders:
                return [], 0
            count = await self._guard.call(
                provider, "holder_count", lambda: self._bitquery.holder_count(contract, chain)
            )
            return holders, max(len(holders), (count.data or 0) if count.ok else 0)
        return [], 0

    async def _lp_addresses(self, contract: str, chain: str) -> frozenset[str]:
        result: ProviderResult[frozenset[str]] = await self._guard.call(
            ProviderName.DEXSCREENER,
            "lp_addresses",
            lambda: self._dexscreener.lp_addresses(contract, chain),
        )
        return (result.data or frozenset()) if result.ok else frozenset()

    async def summary(
        self, contract: str, chain: str, *, limit_top: int | None = None
    ) -> HoldersSummary:
        """Top holder 요약 (예외 없음).

        Args:
            contract: 토큰 컨트랙트 주소
            chain: 체인 이름
            limit_top: 반환할 holder 수 ([10, 1000]으로 제한, 기본 200)

        Returns:
            HoldersSummary (모든 프로바이더 실패 시 partial=True, source="mock")
        """
        limit = clamp_limit_top(limit_top)
        holders: list[RawHolder] = []
        total_holders = 0
        source = MOCK_SOURCE
        for provider in self._priority:
            holders, total_holders = await self._fetch_holders(provider, contract, chain, limit)
            if holders:
                source = provider.value
                break
            logger.debug(f"Holders provider {provider.value} returned no data for {contract}")

        if not holders:
            logger.warning(f"No holder data available for {contract} ({chain}) from {[p.value for p in self._priority]}")
            return HoldersSummary(top_holders=[], total_holders=0, source=MOCK_SOURCE, partial=True)

        meta = await self._rpc(chain).read_meta(contract)
        lp_set = await self._lp_addresses(contract, chain)
        top = compute_shares(holders[:limit], meta.decimals, meta.total_supply, lp_set)
        return HoldersSummary(
            top_holders=top,
            total_holders=total_holders,
            source=source,
            last_updated_at=datetime.now(UTC),
            partial=False,
            supply_unknown=meta.supply_unknown,
        )

    async def holder_series(
        self, contract: str, chain: str, days: int, *, today: date | None = None
    ) -> HolderSeries:
        """일별 holder 시계열 (BitQuery, 실패 시 결정적 합성 시리즈)."""
        window = DayWindow.last_days(days, today)
        result = await self._guard.call(
            ProviderName.BITQUERY,
            "holder_series",
            lambda: self._bitquery.holder_series(contract, chain, window.since, window.till),
        )
        if result.ok and result.data:
            return HolderSeries(chart_data=result.data, source=result.source, synthetic=False)
        return HolderSeries(
            chart_data=synthetic.holder_count_series(days, today=window.till),
            source=SYNTHETIC_SOURCE,
            synthetic=True,
        )
