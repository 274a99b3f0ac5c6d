"""Metric assembler: ProjectContext + TimeRange → MetricValue.

현재 값은 ProviderService, 시리즈는 시리즈 지원 프로바이더에서 가져옵니다.
시리즈가 비어 있으면 현재 값에 고정된 합성 시리즈를 만들고
`synthetic=True`, `series_source="synthetic"`으로 명시합니다.

Change 규칙:
    - change = 마지막 두 포인트 차이 (포인트 < 2 이면 0)
    - change_percent = change / 이전 값 × 100 (이전 값 0이면 0)

Rules Applied:
    - #10 Python Standards: Modern typing
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import TYPE_CHECKING

from loguru import logger

from src.analytics import synthetic
from src.models.metrics import (
    HoldersMetric,
    LiquidityMixMetric,
    PriceMetric,
    TopHoldersMetric,
    TransactionsMetric,
    VolumeMetric,
)
from src.models.types import MOCK_SOURCE, SYNTHETIC_SOURCE, ProviderName

if TYPE_CHECKING:
    from src.analytics.holders import HoldersService
    from src.analytics.provider_service import ProviderService
    from src.data.providers.circuit_breaker import ProviderGuard
    from src.data.providers.dune import DuneAdapter
    from src.data.providers.thegraph import TheGraphAdapter
    from src.models.holders import SeriesPoint
    from src.models.project import ProjectContext
    from src.models.types import TimeRange

DEFAULT_TOP_HOLDERS_LIMIT = 10


def series_change(series: Sequence[SeriesPoint]) -> tuple[float, float]:
    """마지막 두 포인트 기준 (change, change_percent).

    Example:
        >>> series_change([SeriesPoint(date=d1, value=100), SeriesPoint(date=d2, value=110)])
        (10.0, 10.0)
    """
    if len(series) < 2:  # noqa: PLR2004
        return 0.0, 0.0
    previous = series[-2].value
    change = series[-1].value - previous
    percent = change / previous * 100 if previous else 0.0
    return change, percent


class MetricAssembler:
    """대시보드 지표 조립기.

    Args:
        providers: ProviderService
        holders: HoldersService (holder 시계열)
        thegraph: 일별 거래량 1순위
        dune: 일별 거래량 2순위
        guard: circuit breaker 가드
    """

    def __init__(
        self,
        *,
        providers: ProviderService,
        holders: HoldersService,
        thegraph: TheGraphAdapter,
        dune: DuneAdapter,
        guard: ProviderGuard,
    ) -> None:
        self._providers = providers
        self._holders = holders
        self._thegraph = thegraph
        self._dune = dune
        self._guard = guard

    async def assemble_holders(
        self, project: ProjectContext, time_range: TimeRange, *, today: date | None = None
    ) -> HoldersMetric:
        days = time_range.days
        latest = await self._providers.holders_total(project.contract_address, project.chain)
        result = await self._holders.holder_series(project.contract_address, project.chain, days, today=today)
        series = result.chart_data
        series_source = result.source
        is_synthetic = result.synthetic or not series
        if is_synthetic:
            series = synthetic.holders_series(latest.total, days, today=today)
            series_source = SYNTHETIC_SOURCE
        change, percent = series_change(series)
        return HoldersMetric(
            time_range=time_range,
            total_holders=latest.total,
            change=change,
            change_percent=percent,
            chart_data=series,
            synthetic=is_synthetic,
            series_source=series_source,
            source=latest.source,
            data_empty=latest.source == MOCK_SOURCE,
        )

    async def _volume_series(
        self, project: ProjectContext, days: int, today: date | None
    ) -> tuple[list[SeriesPoint], str]:
        graph = await self._guard.call(
            ProviderName.THEGRAPH,
            "token_daily_volume",
            lambda: self._thegraph.token_daily_volume(project.contract_address, project.chain, days, today=today),
        )
        if graph.ok and graph.data:
            return graph.data, graph.source
        dune = await self._guard.call(
            ProviderName.DUNE,
            "volume_series",
            lambda: self._dune.volume_series(project.contract_address, days, today=today),
        )
        if dune.ok and dune.data:
            return dune.data, dune.source
        return [], SYNTHETIC_SOURCE

    async def assemble_volume(
        self, project: ProjectContext, time_range: TimeRange, *, today: date | None = None
    ) -> VolumeMetric:
        days = time_range.days
        price = await self._providers.price_and_volume(project.contract_address, project.chain)
        series, series_source = await self._volume_series(project, days, today)
        is_synthetic = not series
        if is_synthetic:
            series = synthetic.volume_series(price.volume_24h, days, today=today)
        change, percent = series_change(series)
        return VolumeMetric(
            time_range=time_range,
            volume_24h=price.volume_24h,
            change=change,
            change_percent=percent,
            chart_data=series,
            synthetic=is_synthetic,
            series_source=series_source,
            source=price.source,
            data_empty=price.source == MOCK_SOURCE,
        )

    async def assemble_price(self, project: ProjectContext) -> PriceMetric:
        price = await self._providers.price_and_volume(project.contract_address, project.chain)
        return PriceMetric(
            price=price.price,
            change_24h=price.change_24h,
            market_cap=price.market_cap,
            volume_24h=price.volume_24h,
            source=price.source,
            data_empty=price.source == MOCK_SOURCE,
        )

    async def assemble_transactions(
        self, project: ProjectContext, time_range: TimeRange, *, today: date | None = None
    ) -> TransactionsMetric:
        result = await self._providers.tx_series(
            project.contract_address, project.chain, time_range, today=today
        )
        series = result.series
        is_synthetic = result.source == MOCK_SOURCE
        total = int(series[-1].value) if series else 0
        change, percent = series_change(series)
        logger.debug(f"Transactions series for {project.id}: {len(series)} points from {result.source}")
        return TransactionsMetric(
            time_range=time_range,
            total_tx=total,
            change=change,
            change_percent=percent,
            chart_data=series,
            synthetic=is_synthetic,
            series_source=result.source,
            source=result.source,
            data_empty=is_synthetic,
        )

    async def assemble_top_holders(
        self, project: ProjectContext, limit: int = DEFAULT_TOP_HOLDERS_LIMIT
    ) -> TopHoldersMetric:
        page = await self._providers.top_holders(project.contract_address, project.chain, limit)
        return TopHoldersMetric(
            holders=page.holders,
            total_holders=page.total_holders,
            partial=page.partial,
            supply_unknown=page.supply_unknown,
            source=page.source,
            data_empty=not page.holders,
        )

    async def assemble_liquidity_mix(self, project: ProjectContext) -> LiquidityMixMetric:
        mix = await self._providers.liquidity_mix(project.contract_address, project.chain)
        return LiquidityMixMetric(items=mix.items, source=mix.source, data_empty=not mix.items)
