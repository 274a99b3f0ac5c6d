"""SnapshotStore: (project_id, metric) 단위 TTL 스냅샷 저장소.

비즈니스 정책 없이 영속성 계약만 제공합니다.

- upsert는 (project_id, metric) 기준 멱등이며 매번 expires_at을 재계산하고
  created_at은 보존합니다.
- 만료는 읽기 시점 필터입니다 (만료된 행을 삭제하지 않음).
- DB 오류는 StorageError로 전파됩니다 (저장 실패를 캐시 성공으로 취급하지 않음).

Rules Applied:
    - #23 Exception Handling: StorageError propagates
    - #11 Pydantic Modeling: MetricValue tagged union serialized as JSON
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite
from loguru import logger
from pydantic import ValidationError

from src.core.exceptions import StorageError
from src.models.metrics import parse_metric_value
from src.models.snapshot import MetricSnapshot, compute_expires_at

if TYPE_CHECKING:
    from src.models.metrics import MetricValue
    from src.snapshot.database import Database

_SELECT_COLUMNS = (
    "project_id, metric, value, source, data_empty, collected_at, ttl_minutes, expires_at, created_at"
)

_UPSERT_SQL = """
INSERT INTO metric_snapshots
    (project_id, metric, value, source, data_empty, collected_at, ttl_minutes, expires_at, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(project_id, metric) DO UPDATE SET
    value = excluded.value,
    source = excluded.source,
    data_empty = excluded.data_empty,
    collected_at = excluded.collected_at,
    ttl_minutes = excluded.ttl_minutes,
    expires_at = excluded.expires_at
"""


def _utc(moment: datetime) -> datetime:
    """naive datetime은 UTC로 간주."""
    return moment.replace(tzinfo=UTC) if moment.tzinfo is None else moment.astimezone(UTC)


def _to_db(moment: datetime) -> str:
    return _utc(moment).isoformat()


def _from_db(text: str) -> datetime:
    return _utc(datetime.fromisoformat(text))


def _row_to_snapshot(row: aiosqlite.Row | tuple[object, ...]) -> MetricSnapshot:
    (project_id, metric, value, source, data_empty, collected_at, ttl, expires_at, created_at) = tuple(row)
    return MetricSnapshot(
        project_id=str(project_id),
        metric=str(metric),
        value=parse_metric_value(str(value)),
        source=str(source),
        data_empty=bool(data_empty),
        collected_at=_from_db(str(collected_at)),
        ttl_minutes=int(str(ttl)),
        expires_at=_from_db(str(expires_at)),
        created_at=_from_db(str(created_at)),
    )


def is_snapshot_expired(snapshot: MetricSnapshot, now: datetime | None = None) -> bool:
    """now >= expires_at (경계 포함)."""
    return snapshot.is_expired(_utc(now or datetime.now(UTC)))


class SnapshotStore:
    """metric_snapshots 테이블 저장소.

    Args:
        database: Database 인스턴스 (연결 완료 상태)

    Example:
        >>> store = SnapshotStore(db)
        >>> snap = await store.upsert_snapshot("p1", "priceV2:p1", value, "coingecko", ttl_minutes=1)
        >>> await store.get_fresh_snapshot("p1", "priceV2:p1")
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def upsert_snapshot(
        self,
        project_id: str,
        metric: str,
        value: MetricValue,
        source: str,
        ttl_minutes: int,
        collected_at: datetime | None = None,
        *,
        data_empty: bool | None = None,
    ) -> MetricSnapshot:
        """멱등 upsert 후 저장된 레코드 반환.

        Args:
            project_id: 프로젝트 ID
            metric: 메트릭 키
            value: 메트릭 payload
            source: 소스 태그
            ttl_minutes: TTL (분, >= 0)
            collected_at: 수집 시각 (None이면 현재 UTC)
            data_empty: 빈 데이터 여부 (None이면 value.data_empty)

        Returns:
            DB에서 다시 읽은 MetricSnapshot

        Raises:
            StorageError: DB 쓰기/읽기 실패
            ValueError: ttl_minutes < 0
        """
        if ttl_minutes < 0:
            msg = f"ttl_minutes must be >= 0, got {ttl_minutes}"
            raise ValueError(msg)
        collected = _utc(collected_at or datetime.now(UTC))
        expires = compute_expires_at(collected, ttl_minutes)
        empty = value.data_empty if data_empty is None else data_empty
        try:
            conn = self._db.connection
            await conn.execute(
                _UPSERT_SQL,
                (
                    project_id,
                    metric,
                    value.model_dump_json(),
                    source,
                    int(empty),
                    _to_db(collected),
                    ttl_minutes,
                    _to_db(expires),
                    _to_db(datetime.now(UTC)),
                ),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise StorageError(
                f"Failed to upsert snapshot: {e}",
                context={"project_id": project_id, "metric": metric},
            ) from e

        stored = await self.get_latest_snapshot(project_id, metric)
        if stored is None:
            msg = "Snapshot missing after upsert"
            raise StorageError(msg, context={"project_id": project_id, "metric": metric})
        logger.debug(f"Snapshot stored: {metric} (source={source}, ttl={ttl_minutes}m)")
        return stored

    async def get_latest_snapshot(self, project_id: str, metric: str) -> MetricSnapshot | None:
        """최신 스냅샷 (만료 여부 무관)."""
        rows = await self._fetch(
            f"SELECT {_SELECT_COLUMNS} FROM metric_snapshots WHERE project_id = ? AND metric = ?",  # noqa: S608
            (project_id, metric),
        )
        return rows[0] if rows else None

    async def get_fresh_snapshot(
        self, project_id: str, metric: str, now: datetime | None = None
    ) -> MetricSnapshot | None:
        """만료되지 않은 스냅샷 (만료 행은 삭제하지 않음)."""
        snapshot = await self.get_latest_snapshot(project_id, metric)
        if snapshot is None or is_snapshot_expired(snapshot, now):
            return None
        return snapshot

    async def list_snapshots(self, project_id: str) -> list[MetricSnapshot]:
        """프로젝트의 모든 스냅샷 (메트릭 키 순)."""
        return await self._fetch(
            f"SELECT {_SELECT_COLUMNS} FROM metric_snapshots WHERE project_id = ? ORDER BY metric",  # noqa: S608
            (project_id,),
        )

    async def delete_snapshot(self, project_id: str, metric: str | None = None) -> int:
        """스냅샷 삭제 (metric 미지정 시 프로젝트 전체). 삭제된 행 수 반환."""
        if metric is None:
            sql, params = "DELETE FROM metric_snapshots WHERE project_id = ?", (project_id,)
        else:
            sql = "DELETE FROM metric_snapshots WHERE project_id = ? AND metric = ?"
            params = (project_id, metric)
        try:
            conn = self._db.connection
            cursor = await conn.execute(sql, params)
            await conn.commit()
        except aiosqlite.Error as e:
            raise StorageError(
                f"Failed to delete snapshot: {e}",
                context={"project_id": project_id, "metric": metric},
            ) from e
        logger.info(f"Deleted {cursor.rowcount} snapshot(s) for {project_id} ({metric or 'all'})")
        return cursor.rowcount

    async def _fetch(self, sql: str, params: tuple[object, ...]) -> list[MetricSnapshot]:
        try:
            cursor = await self._db.connection.execute(sql, params)
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to read snapshots: {e}", context={"params": params}) from e
        try:
            return [_row_to_snapshot(row) for row in rows]
        except ValidationError as e:
            raise StorageError(f"Corrupt snapshot row: {e}", context={"params": params}) from e
