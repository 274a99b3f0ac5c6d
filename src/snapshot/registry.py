"""Metric registry: sweep 대상 메트릭 family와 키 규칙.

Key convention: `<family>:<project_id>[:<time_range>]`
(`V2` 접미사는 메트릭 형태 변경 시 키 충돌을 막는 버전 네임스페이스)
"""

from __future__ import annotations

from dataclasses import dataclass

from src.models.types import TimeRange

DEFAULT_TTL_MINUTES = 5

DEFAULT_RANGES: tuple[TimeRange, ...] = (TimeRange.H24, TimeRange.D7, TimeRange.D30, TimeRange.D90)


@dataclass(frozen=True)
class MetricConfig:
    """메트릭 family 설정.

    Attributes:
        family: 키 접두사 (예: "holdersV2")
        ttl_minutes: 스냅샷 TTL
        ranges: 지원하는 TimeRange (비어 있으면 범위 없는 단일 키)
        limit: top holders 등 행 수 제한 (해당 시)
    """

    family: str
    ttl_minutes: int
    ranges: tuple[TimeRange, ...] = ()
    limit: int | None = None

    @property
    def ranged(self) -> bool:
        """TimeRange별 키를 가지는지 여부."""
        return bool(self.ranges)

    def active_ranges(self, wanted: tuple[TimeRange, ...]) -> tuple[TimeRange | None, ...]:
        """요청 범위 중 이 family가 지원하는 것만 (범위 없는 family는 (None,))."""
        if not self.ranges:
            return (None,)
        return tuple(r for r in self.ranges if r in wanted)


HOLDERS = MetricConfig("holdersV2", ttl_minutes=10, ranges=DEFAULT_RANGES)
VOLUME = MetricConfig("volumeV2", ttl_minutes=5, ranges=DEFAULT_RANGES)
TRANSACTIONS = MetricConfig("transactionsV2", ttl_minutes=5, ranges=DEFAULT_RANGES)
PRICE = MetricConfig("priceV2", ttl_minutes=1)
TOP_HOLDERS = MetricConfig("topHoldersV2", ttl_minutes=30, limit=10)
LIQUIDITY_MIX = MetricConfig("liquidityMixV2", ttl_minutes=10)

METRIC_CONFIGS: tuple[MetricConfig, ...] = (
    HOLDERS,
    VOLUME,
    TRANSACTIONS,
    PRICE,
    TOP_HOLDERS,
    LIQUIDITY_MIX,
)


def make_metric_key(family: str, project_id: str, time_range: TimeRange | None = None) -> str:
    """메트릭 키 생성.

    Example:
        >>> make_metric_key("holdersV2", "p1", TimeRange.D7)
        'holdersV2:p1:7d'
        >>> make_metric_key("priceV2", "p1")
        'priceV2:p1'
    """
    key = f"{family}:{project_id}"
    return f"{key}:{time_range.value}" if time_range is not None else key


def family_of(metric_key: str) -> str:
    """메트릭 키 → family (카운터 라벨용)."""
    return metric_key.split(":", 1)[0]


def get_config(family: str) -> MetricConfig:
    """family 이름으로 설정 조회.

    Raises:
        KeyError: 등록되지 않은 family
    """
    for config in METRIC_CONFIGS:
        if config.family == family:
            return config
    raise KeyError(family)


def parse_metric_key(metric_key: str) -> tuple[MetricConfig, str, TimeRange | None]:
    """메트릭 키 → (config, project_id, time_range).

    Raises:
        KeyError: 등록되지 않은 family
        ValueError: 형식 오류, 또는 family가 지원하지 않는 범위

    Example:
        >>> config, project_id, time_range = parse_metric_key("volumeV2:pepe:30d")
        >>> config.family, project_id, time_range
        ('volumeV2', 'pepe', <TimeRange.D30: '30d'>)
    """
    parts = metric_key.split(":")
    if len(parts) not in (2, 3) or not all(parts):
        msg = f"Malformed metric key: {metric_key!r}"
        raise ValueError(msg)
    config = get_config(parts[0])
    time_range = TimeRange(parts[2]) if len(parts) == 3 else None
    if config.ranged and time_range not in config.ranges:
        msg = f"{config.family} needs one of {[r.value for r in config.ranges]}: {metric_key!r}"
        raise ValueError(msg)
    if not config.ranged and time_range is not None:
        msg = f"{config.family} takes no range: {metric_key!r}"
        raise ValueError(msg)
    return config, parts[1], time_range
