"""SQL DDL 상수: 스냅샷 SQLite 스키마 정의.

metric_snapshots 테이블 하나. (project_id, metric) 쌍마다 정확히 한 행이며,
IF NOT EXISTS로 멱등하게 생성됩니다.

타임스탬프는 UTC ISO-8601 문자열(마이크로초 포함)로 저장합니다.
"""

SCHEMA_SQL = """
-- 메트릭 스냅샷 (TTL 캐시)
CREATE TABLE IF NOT EXISTS metric_snapshots (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id      TEXT NOT NULL,
    metric          TEXT NOT NULL,
    value           TEXT NOT NULL,
    source          TEXT NOT NULL,
    data_empty      INTEGER NOT NULL DEFAULT 0,
    collected_at    TEXT NOT NULL,
    ttl_minutes     INTEGER NOT NULL,
    expires_at      TEXT NOT NULL,
    created_at      TEXT NOT NULL,
    UNIQUE (project_id, metric)
);

CREATE INDEX IF NOT EXISTS idx_snapshots_project ON metric_snapshots(project_id);
CREATE INDEX IF NOT EXISTS idx_snapshots_expires ON metric_snapshots(expires_at);
"""
