"""Snapshot orchestrator: freshness checks, collection and sweeps.

State machine per metric key:
    no-snapshot --collect--> fresh --ttl elapses--> stale --collect--> fresh

"stale" 상태는 저장되지 않으며 읽기 시점에 expires_at으로 계산됩니다.

Entry points:
    - ensure_fresh_snapshot: 신선한 스냅샷 반환, 없으면 collector 실행 후 저장/재조회
    - refresh_snapshots_for_project: 레지스트리의 모든 메트릭을 sweep (메트릭별 격리)
    - refresh_active_projects: 활성 프로젝트 전체 sweep (CLI/cron hook)

같은 (project_id, metric)에 대한 동시 수집은 하나의 in-flight task를 공유합니다.

Rules Applied:
    - #23 Exception Handling: StorageError propagates from ensure_fresh_snapshot,
      sweep isolates per-metric failures into outcomes
    - #15 Logging Standards: project/metric/sweep context binding
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from loguru import logger

from src.core.exceptions import StorageError, add_context_note
from src.logging.context import LoggingContext, generate_sweep_id, get_snapshot_logger
from src.models.snapshot import CollectedMetric, MetricSnapshot, ProjectRefreshResult, RefreshOutcome
from src.models.types import SYNTHETIC_SOURCE, TimeRange
from src.snapshot.registry import (
    DEFAULT_RANGES,
    DEFAULT_TTL_MINUTES,
    METRIC_CONFIGS,
    MetricConfig,
    family_of,
    make_metric_key,
)
from src.snapshot.store import is_snapshot_expired

if TYPE_CHECKING:
    from src.analytics.assembler import MetricAssembler
    from src.models.metrics import MetricValue
    from src.models.project import ProjectContext
    from src.monitoring.metrics import OperationalCounters
    from src.snapshot.store import SnapshotStore

Collector = Callable[[], Awaitable[CollectedMetric]]


def _is_degraded(collected: CollectedMetric) -> bool:
    value = collected.value
    return (
        collected.source == SYNTHETIC_SOURCE
        or value.data_empty
        or bool(getattr(value, "synthetic", False))
    )


class SnapshotOrchestrator:
    """메트릭 스냅샷 오케스트레이터.

    Args:
        store: SnapshotStore
        assembler: MetricAssembler (레지스트리 collector)
        counters: 운영 카운터
        configs: 메트릭 레지스트리 (기본 METRIC_CONFIGS)
    """

    def __init__(
        self,
        store: SnapshotStore,
        assembler: MetricAssembler,
        counters: OperationalCounters,
        *,
        configs: Sequence[MetricConfig] = METRIC_CONFIGS,
    ) -> None:
        self._store = store
        self._assembler = assembler
        self._counters = counters
        self._configs = tuple(configs)
        self._in_flight: dict[tuple[str, str], asyncio.Task[MetricSnapshot]] = {}

    @property
    def configs(self) -> tuple[MetricConfig, ...]:
        return self._configs

    @property
    def in_flight(self) -> int:
        """진행 중인 수집 task 수."""
        return len(self._in_flight)

    # =========================================================================
    # Collection
    # =========================================================================

    async def _collect_and_store(
        self,
        project: ProjectContext,
        metric_key: str,
        ttl_minutes: int,
        collect: Collector,
        collected_at: datetime | None,
    ) -> MetricSnapshot:
        collected = await collect()
        if _is_degraded(collected):
            self._counters.inc(f"snapshots.synthetic.{family_of(metric_key)}")
        return await self._store.upsert_snapshot(
            project.id,
            metric_key,
            collected.value,
            collected.source,
            ttl_minutes,
            collected_at,
        )

    async def _collect_once(
        self,
        project: ProjectContext,
        metric_key: str,
        ttl_minutes: int,
        collect: Collector,
        collected_at: datetime | None,
    ) -> MetricSnapshot:
        """키별 in-flight 중복 제거 수집."""
        key = (project.id, metric_key)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(
                self._collect_and_store(project, metric_key, ttl_minutes, collect, collected_at),
                name=f"collect:{metric_key}",
            )
            self._in_flight[key] = task
            task.add_done_callback(lambda _t: self._in_flight.pop(key, None))
        else:
            get_snapshot_logger(project.id, metric_key).debug("Joining in-flight collection")
        return await asyncio.shield(task)

    def collector_for(
        self,
        config: MetricConfig,
        project: ProjectContext,
        time_range: TimeRange | None = None,
    ) -> Collector:
        """레지스트리 family → MetricAssembler collector.

        Raises:
            KeyError: 등록되지 않은 family
        """
        assembler = self._assembler
        time_range = time_range or TimeRange.D7
        builders: dict[str, Callable[[], Awaitable[MetricValue]]] = {
            "holdersV2": lambda: assembler.assemble_holders(project, time_range),
            "volumeV2": lambda: assembler.assemble_volume(project, time_range),
            "transactionsV2": lambda: assembler.assemble_transactions(project, time_range),
            "priceV2": lambda: assembler.assemble_price(project),
            "topHoldersV2": lambda: assembler.assemble_top_holders(project, config.limit or 10),
            "liquidityMixV2": lambda: assembler.assemble_liquidity_mix(project),
        }
        build = builders[config.family]

        async def collect() -> CollectedMetric:
            value = await build()
            return CollectedMetric(source=value.source, value=value)

        return collect

    # =========================================================================
    # Entry Points
    # =========================================================================

    async def ensure_fresh_snapshot(
        self,
        project: ProjectContext,
        metric_key: str,
        *,
        ttl_minutes: int = DEFAULT_TTL_MINUTES,
        fallback_collect: Collector | None = None,
        now: datetime | None = None,
    ) -> MetricSnapshot | None:
        """신선한 스냅샷 반환, 없으면 수집 후 저장된 레코드 반환.

        Args:
            project: 프로젝트 컨텍스트 (호출자가 권한 확인 완료)
            metric_key: 메트릭 키
            ttl_minutes: 새로 저장할 스냅샷 TTL
            fallback_collect: 수집 함수 (None이면 수집하지 않음)
            now: 기준 시각 (기본 현재 UTC)

        Returns:
            MetricSnapshot 또는 None (스냅샷도 collector도 없음)

        Raises:
            StorageError: 저장소 읽기/쓰기 실패
        """
        try:
            fresh = await self._store.get_fresh_snapshot(project.id, metric_key, now)
            if fresh is not None:
                return fresh
            if fallback_collect is None:
                return None
            return await self._collect_once(project, metric_key, ttl_minutes, fallback_collect, now)
        except StorageError as e:
            add_context_note(e, f"while ensuring {metric_key} for project {project.id}")
            raise

    async def refresh_snapshots_for_project(
        self,
        project: ProjectContext,
        *,
        now: datetime | None = None,
        force: bool = False,
        ranges: Sequence[TimeRange] | None = None,
    ) -> ProjectRefreshResult:
        """레지스트리 메트릭 sweep.

        만료되었거나 없거나 force인 메트릭만 수집합니다. 개별 메트릭 실패는
        outcome의 error로 기록되고 sweep은 계속됩니다 (예외를 던지지 않음).

        Args:
            project: 프로젝트 컨텍스트
            now: 기준 시각 (기본 현재 UTC)
            force: 신선도와 무관하게 재수집
            ranges: 범위별 메트릭의 대상 TimeRange (기본 24h/7d/30d/90d, family가 지원하지 않는 범위는 제외)

        Returns:
            ProjectRefreshResult
        """
        now = now or datetime.now(UTC)
        wanted = tuple(ranges) if ranges is not None else DEFAULT_RANGES
        outcomes: list[RefreshOutcome] = []

        for config in self._configs:
            for time_range in config.active_ranges(wanted):
                metric_key = make_metric_key(config.family, project.id, time_range)
                log = get_snapshot_logger(project.id, metric_key)
                try:
                    snapshot = await self._store.get_latest_snapshot(project.id, metric_key)
                    if not force and snapshot is not None and not is_snapshot_expired(snapshot, now):
                        outcomes.append(RefreshOutcome(metric=metric_key, refreshed=False, reason="fresh"))
                        continue
                    stored = await self._collect_once(
                        project,
                        metric_key,
                        config.ttl_minutes,
                        self.collector_for(config, project, time_range),
                        now,
                    )
                except Exception as e:  # noqa: BLE001
                    self._counters.inc(f"snapshots.refresh.error.{config.family}")
                    log.warning(f"Snapshot refresh failed: {type(e).__name__}: {e}")
                    outcomes.append(RefreshOutcome(metric=metric_key, refreshed=False, error=str(e)))
                    continue
                self._counters.inc(f"snapshots.refresh.success.{config.family}")
                outcomes.append(RefreshOutcome(metric=metric_key, refreshed=True, source=stored.source))

        result = ProjectRefreshResult(project_id=project.id, outcomes=outcomes)
        logger.info(
            f"Sweep {project.id}: {result.refreshed_count} refreshed, "
            f"{len(outcomes) - result.refreshed_count - result.error_count} fresh, {result.error_count} errors"
        )
        return result

    async def refresh_active_projects(
        self,
        projects: Sequence[ProjectContext],
        *,
        now: datetime | None = None,
        force: bool = False,
        ranges: Sequence[TimeRange] | None = None,
    ) -> list[ProjectRefreshResult]:
        """활성 프로젝트 순차 sweep (스케줄러/CLI hook)."""
        sweep_id = generate_sweep_id()
        logger.info(f"Starting {sweep_id} for {len(projects)} project(s)")
        results: list[ProjectRefreshResult] = []
        for project in projects:
            async with LoggingContext(project_id=project.id, sweep_id=sweep_id):
                results.append(
                    await self.refresh_snapshots_for_project(project, now=now, force=force, ranges=ranges)
                )
        return results
