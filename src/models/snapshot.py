"""Snapshot persistence and refresh result models.

Rules Applied:
    - #11 Pydantic Modeling: frozen=True
"""

from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field, computed_field

from src.models.metrics import MetricValue


def compute_expires_at(collected_at: datetime, ttl_minutes: int) -> datetime:
    """collected_at + ttl_minutes × 60초."""
    return collected_at + timedelta(minutes=ttl_minutes)


class MetricSnapshot(BaseModel):
    """(project_id, metric) 단위로 저장되는 TTL 스냅샷.

    Invariant: expires_at == collected_at + ttl_minutes × 60s (upsert마다 재계산).

    Attributes:
        project_id: 프로젝트 ID
        metric: 메트릭 키 (예: "holdersV2:p1:7d")
        value: 메트릭 payload (tagged union)
        source: 데이터 소스 태그
        data_empty: 실제 데이터 없이 합성/빈 값으로 채워진 경우 True
        collected_at: 수집 시각 (UTC)
        ttl_minutes: 수집 시 사용된 TTL
        expires_at: 만료 시각
        created_at: 최초 생성 시각 (갱신 시 보존)
    """

    model_config = ConfigDict(frozen=True)

    project_id: str
    metric: str
    value: MetricValue
    source: str
    data_empty: bool = False
    collected_at: datetime
    ttl_minutes: int = Field(..., ge=0)
    expires_at: datetime
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """now >= expires_at (경계 포함)."""
        return now >= self.expires_at


class CollectedMetric(BaseModel):
    """Collector가 반환하는 수집 결과."""

    model_config = ConfigDict(frozen=True)

    source: str
    value: MetricValue


class RefreshOutcome(BaseModel):
    """Sweep 내 개별 메트릭 처리 결과.

    Attributes:
        metric: 메트릭 키
        refreshed: 새로 수집/저장했으면 True
        reason: 건너뛴 이유 (예: "fresh")
        error: 수집 실패 메시지
        source: 저장된 스냅샷 소스
    """

    model_config = ConfigDict(frozen=True)

    metric: str
    refreshed: bool
    reason: str | None = None
    error: str | None = None
    source: str | None = None


class ProjectRefreshResult(BaseModel):
    """프로젝트 단위 sweep 결과."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    outcomes: list[RefreshOutcome] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_count(self) -> int:
        """실패한 메트릭 수."""
        return sum(1 for o in self.outcomes if o.error is not None)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def refreshed_count(self) -> int:
        """갱신된 메트릭 수."""
        return sum(1 for o in self.outcomes if o.refreshed)
