"""Provider service: per-metric fallback chains used by metric assembly.

Holders service와 독립된 우선순위를 갖는 fallback façade입니다. 모든 메서드는
예외 없이 타입이 있는 결과를 반환하며, 최악의 경우 `source="mock"`입니다.

Fallback chains:
    - holders_total:    Moralis stats → BitQuery count → holders summary → mock 0
    - top_holders:      holders summary → Dune → mock []
    - tx_series:        BitQuery → Moralis transfers → Etherscan → synthetic (mock)
    - price_and_volume: CoinGecko (+ Dexscreener 24h volume) → Dexscreener → mock 0
    - liquidity_mix:    Dexscreener pairs → mock []

각 프로바이더 단계는 `<provider>:<operation>` circuit breaker 가드를 거칩니다.

Rules Applied:
    - #23 Exception Handling: Every path terminates in a typed result
    - #11 Pydantic Modeling: frozen result models
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import TYPE_CHECKING

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from src.analytics import synthetic
from src.models.holders import SeriesPoint
from src.models.market import DexPair, TokenPrice
from src.models.metrics import LiquidityShare, RankedHolder
from src.models.types import MOCK_SOURCE, ProviderName, TimeRange

if TYPE_CHECKING:
    from src.analytics.holders import HoldersService
    from src.data.providers.bitquery import BitqueryAdapter
    from src.data.providers.circuit_breaker import ProviderGuard
    from src.data.providers.coingecko import CoinGeckoAdapter
    from src.data.providers.dexscreener import DexscreenerAdapter
    from src.data.providers.dune import DuneAdapter
    from src.data.providers.etherscan import EtherscanAdapter
    from src.data.providers.moralis import MoralisAdapter
    from src.monitoring.metrics import OperationalCounters

HOLDERS_TOTAL_LIMIT_TOP = 50


# =============================================================================
# Result Models
# =============================================================================


class HoldersTotal(BaseModel):
    """총 holder 수."""

    model_config = ConfigDict(frozen=True)

    total: int = Field(..., ge=0)
    source: str


class TopHoldersPage(BaseModel):
    """순위가 매겨진 상위 holder 페이지."""

    model_config = ConfigDict(frozen=True)

    holders: list[RankedHolder] = Field(default_factory=list)
    source: str
    total_holders: int = Field(default=0, ge=0)
    partial: bool = False
    supply_unknown: bool = False


class TxSeries(BaseModel):
    """일별 전송 건수 시리즈."""

    model_config = ConfigDict(frozen=True)

    series: list[SeriesPoint] = Field(default_factory=list)
    source: str


class PriceVolume(TokenPrice):
    """가격 + 24h 거래량 (출처 포함)."""

    source: str


class LiquidityMix(BaseModel):
    """DEX별 유동성 비중."""

    model_config = ConfigDict(frozen=True)

    items: list[LiquidityShare] = Field(default_factory=list)
    source: str


# =============================================================================
# Helpers
# =============================================================================


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def liquidity_shares(pairs: list[DexPair]) -> list[LiquidityShare]:
    """DEX별 USD 유동성 합계 → 정수 퍼센트 (내림차순, 합계 ≈ 100).

    독립 반올림이므로 합계가 정확히 100이 아닐 수 있습니다.
    """
    by_dex: dict[str, float] = defaultdict(float)
    for pair in pairs:
        by_dex[pair.dex_id] += pair.liquidity_usd
    total = sum(by_dex.values())
    items = [
        LiquidityShare(
            name=name,
            liquidity_usd=usd,
            percentage=_round_half_up(usd / total * 100) if total > 0 else 0,
        )
        for name, usd in by_dex.items()
    ]
    return sorted(items, key=lambda i: (i.percentage, i.liquidity_usd), reverse=True)


class ProviderService:
    """지표별 프로바이더 fallback façade.

    Example:
        >>> price = await provider_service.price_and_volume("0x...", "ethereum")
        >>> price.source
        'coingecko'
    """

    def __init__(
        self,
        *,
        holders: HoldersService,
        moralis: MoralisAdapter,
        bitquery: BitqueryAdapter,
        dexscreener: DexscreenerAdapter,
        coingecko: CoinGeckoAdapter,
        dune: DuneAdapter,
        etherscan: EtherscanAdapter,
        guard: ProviderGuard,
        counters: OperationalCounters,
    ) -> None:
        self._holders = holders
        self._moralis = moralis
        self._bitquery = bitquery
        self._dexscreener = dexscreener
        self._coingecko = coingecko
        self._dune = dune
        self._etherscan = etherscan
        self._guard = guard
        self._counters = counters

    @property
    def holders(self) -> HoldersService:
        return self._holders

    def _fallback(self, family: str, step: str) -> None:
        self._counters.inc(f"providers.{family}.fallbacks")
        logger.debug(f"{family} fallback → {step}")

    # ------------------------------------------------------------------
    # Holders
    # ------------------------------------------------------------------

    async def holders_total(self, contract: str, chain: str) -> HoldersTotal:
        """총 holder 수 (Moralis → BitQuery → holders summary → mock 0)."""
        stats = await self._guard.call(
            ProviderName.MORALIS, "holder_stats", lambda: self._moralis.holder_stats(contract, chain)
        )
        if stats.ok and stats.data:
            return HoldersTotal(total=stats.data, source=stats.source)

        self._fallback("holders", "bitquery")
        count = await self._guard.call(
            ProviderName.BITQUERY, "holder_count", lambda: self._bitquery.holder_count(contract, chain)
        )
        if count.ok and count.data:
            return HoldersTotal(total=count.data, source=count.source)

        self._fallback("holders", "summary")
        summary = await self._holders.summary(contract, chain, limit_top=HOLDERS_TOTAL_LIMIT_TOP)
        if summary.total_holders > 0:
            return HoldersTotal(total=summary.total_holders, source=summary.source)

        self._fallback("holders", "mock")
        return HoldersTotal(total=0, source=MOCK_SOURCE)

    async def top_holders(
        self, contract: str, chain: str, limit: int, offset: int = 0
    ) -> TopHoldersPage:
        """순위 holder 페이지 (percentage = total supply share × 100)."""
        limit = max(1, limit)
        offset = max(0, offset)
        summary = await self._holders.summary(contract, chain, limit_top=offset + limit)
        if summary.top_holders:
            rows = [
                RankedHolder(
                    rank=offset + idx + 1,
                    address=h.address,
                    balance=h.balance,
                    percentage=h.total_supply_share * 100,
                    circulating_percentage=h.circulating_share * 100,
                    tags=h.tags,
                )
                for idx, h in enumerate(summary.top_holders[offset : offset + limit])
            ]
            return TopHoldersPage(
                holders=rows,
                source=summary.source,
                total_holders=summary.total_holders,
                partial=summary.partial,
                supply_unknown=summary.supply_unknown,
            )

        self._fallback("holders", "dune")
        dune = await self._guard.call(
            ProviderName.DUNE, "top_holders", lambda: self._dune.top_holders(contract, offset + limit)
        )
        if dune.ok and dune.data:
            rows = [
                h.model_copy(update={"rank": offset + idx + 1})
                for idx, h in enumerate(dune.data[offset : offset + limit])
            ]
            return TopHoldersPage(holders=rows, source=dune.source, partial=True)

        self._fallback("holders", "mock")
        return TopHoldersPage(holders=[], source=MOCK_SOURCE, partial=True)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def tx_series(
        self,
        contract: str,
        chain: str,
        time_range: TimeRange,
        *,
        today: date | None = None,
    ) -> TxSeries:
        """일별 전송 건수 (BitQuery → Moralis → Etherscan → 합성 mock)."""
        days = time_range.days
        steps = (
            (ProviderName.BITQUERY, "tx_series", lambda: self._bitquery.tx_series(contract, chain, days, today=today)),
            (ProviderName.MORALIS, "transfer_series", lambda: self._moralis.transfer_series(contract, chain, days, today=today)),
            (ProviderName.ETHERSCAN, "transfer_counts_daily", lambda: self._etherscan.transfer_counts_daily(contract, chain, days, today=today)),
        )
        for idx, (provider, operation, fn) in enumerate(steps):
            if idx > 0:
                self._fallback("tx", provider.value)
            result = await self._guard.call(provider, operation, fn)
            if result.ok and result.data:
                return TxSeries(series=result.data, source=result.source)

        self._fallback("tx", "mock")
        return TxSeries(series=synthetic.tx_series(days, today=today), source=MOCK_SOURCE)

    # ------------------------------------------------------------------
    # Market
    # ------------------------------------------------------------------

    async def _best_pair(self, contract: str, chain: str) -> DexPair | None:
        result = await self._guard.call(
            ProviderName.DEXSCREENER, "best_pair", lambda: self._dexscreener.best_pair(contract, chain)
        )
        return result.data if result.ok else None

    async def price_and_volume(self, contract: str, chain: str) -> PriceVolume:
        """가격 / 24h 변동 / 시가총액 / 24h 거래량."""
        price = await self._guard.call(
            ProviderName.COINGECKO, "token_price", lambda: self._coingecko.token_price(contract, chain)
        )
        pair = await self._best_pair(contract, chain)
        if price.ok and price.data is not None:
            volume = pair.volume_h24 if pair is not None and pair.volume_h24 > 0 else price.data.volume_24h
            return PriceVolume(
                price=price.data.price,
                change_24h=price.data.change_24h,
                market_cap=price.data.market_cap,
                volume_24h=volume,
                source=price.source,
            )

        self._fallback("price", "dexscreener")
        if pair is not None and pair.price_usd > 0:
            return PriceVolume(
                price=pair.price_usd,
                change_24h=pair.price_change_h24,
                market_cap=pair.market_cap,
                volume_24h=pair.volume_h24,
                source=ProviderName.DEXSCREENER.value,
            )

        self._fallback("price", "mock")
        return PriceVolume(price=0.0, change_24h=0.0, market_cap=None, volume_24h=0.0, source=MOCK_SOURCE)

    async def liquidity_mix(self, contract: str, chain: str) -> LiquidityMix:
        """DEX별 유동성 비중 (같은 체인 풀 우선)."""
        result = await self._guard.call(
            ProviderName.DEXSCREENER, "pairs", lambda: self._dexscreener.pairs(contract)
        )
        pairs = (result.data or []) if result.ok else []
        on_chain = [p for p in pairs if p.chain_id == chain.lower()]
        items = liquidity_shares(on_chain or pairs)
        if items and any(i.liquidity_usd > 0 for i in items):
            return LiquidityMix(items=items, source=result.source)

        self._fallback("liquidity", "mock")
        return LiquidityMix(items=[], source=MOCK_SOURCE)
