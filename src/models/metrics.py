"""Metric payload models (snapshot value).

스냅샷 value는 `kind` 필드로 구분되는 tagged union(`MetricValue`)입니다.
Assembler와 Orchestrator가 동일한 타입 계약을 공유하며, DB에는 JSON으로 직렬화됩니다.

Rules Applied:
    - #11 Pydantic Modeling: frozen=True, discriminated union
    - #10 Python Standards: Modern typing (X | None)
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from src.models.holders import SeriesPoint
from src.models.types import HolderTag, TimeRange


class _MetricBase(BaseModel):
    """공통 필드."""

    model_config = ConfigDict(frozen=True)

    source: str
    data_empty: bool = False


class _SeriesMetricBase(_MetricBase):
    """시계열을 포함하는 메트릭 공통 필드.

    Attributes:
        time_range: 요청된 시간 범위
        chart_data: 일별 포인트 (오래된 순)
        change: 마지막 두 포인트 차이
        change_percent: change / 이전 값 × 100
        synthetic: 합성 시리즈 여부 (UI 표시용)
        series_source: 시리즈 제공자 ("synthetic" 포함)
    """

    time_range: TimeRange
    chart_data: list[SeriesPoint] = Field(default_factory=list)
    change: float = 0.0
    change_percent: float = 0.0
    synthetic: bool = False
    series_source: str


class HoldersMetric(_SeriesMetricBase):
    """Holder 수 메트릭."""

    kind: Literal["holders"] = "holders"
    total_holders: int = Field(..., ge=0)


class VolumeMetric(_SeriesMetricBase):
    """거래량 메트릭 (USD)."""

    kind: Literal["volume"] = "volume"
    volume_24h: float = Field(..., ge=0)


class TransactionsMetric(_SeriesMetricBase):
    """일별 전송 건수 메트릭."""

    kind: Literal["transactions"] = "transactions"
    total_tx: int = Field(..., ge=0)


class PriceMetric(_MetricBase):
    """가격 메트릭."""

    kind: Literal["price"] = "price"
    price: float = Field(..., ge=0)
    change_24h: float = 0.0
    market_cap: float | None = None
    volume_24h: float = Field(default=0.0, ge=0)


class RankedHolder(BaseModel):
    """순위가 매겨진 holder 행."""

    model_config = ConfigDict(frozen=True)

    rank: int = Field(..., ge=1)
    address: str
    balance: float
    percentage: float = Field(..., ge=0)
    circulating_percentage: float = Field(default=0.0, ge=0)
    tags: frozenset[HolderTag] = Field(default_factory=frozenset)


class TopHoldersMetric(_MetricBase):
    """상위 holder 메트릭."""

    kind: Literal["top_holders"] = "top_holders"
    holders: list[RankedHolder] = Field(default_factory=list)
    total_holders: int = Field(default=0, ge=0)
    partial: bool = False
    supply_unknown: bool = False


class LiquidityShare(BaseModel):
    """DEX별 유동성 비중."""

    model_config = ConfigDict(frozen=True)

    name: str
    liquidity_usd: float = Field(..., ge=0)
    percentage: int = Field(..., ge=0)


class LiquidityMixMetric(_MetricBase):
    """DEX별 유동성 분포 메트릭 (정수 퍼센트, 합계 ≈ 100)."""

    kind: Literal["liquidity_mix"] = "liquidity_mix"
    items: list[LiquidityShare] = Field(default_factory=list)


MetricValue = Annotated[
    HoldersMetric
    | VolumeMetric
    | PriceMetric
    | TransactionsMetric
    | TopHoldersMetric
    | LiquidityMixMetric,
    Field(discriminator="kind"),
]

METRIC_VALUE_ADAPTER: TypeAdapter[MetricValue] = TypeAdapter(MetricValue)


def parse_metric_value(raw: str | bytes | dict[str, object]) -> MetricValue:
    """JSON 문자열 또는 dict → MetricValue.

    Args:
        raw: DB에 저장된 JSON 또는 dict

    Returns:
        kind에 맞는 메트릭 모델

    Raises:
        pydantic.ValidationError: 알 수 없는 kind 또는 스키마 불일치
    """
    if isinstance(raw, str | bytes):
        return METRIC_VALUE_ADAPTER.validate_json(raw)
    return METRIC_VALUE_ADAPTER.validate_python(raw)
