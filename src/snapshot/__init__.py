"""Metric snapshot caching: persistence, registry and orchestration.

Exports:
    - Database: aiosqlite connection manager (WAL)
    - SnapshotStore: Idempotent (project_id, metric) TTL snapshots
    - SnapshotOrchestrator: Freshness checks, in-flight de-duplication, sweeps
    - METRIC_CONFIGS / make_metric_key: Metric family registry
"""

from src.snapshot.database import Database
from src.snapshot.orchestrator import SnapshotOrchestrator
from src.snapshot.registry import DEFAULT_RANGES, METRIC_CONFIGS, MetricConfig, make_metric_key
from src.snapshot.store import SnapshotStore, is_snapshot_expired

__all__ = [
    "DEFAULT_RANGES",
    "METRIC_CONFIGS",
    "Database",
    "MetricConfig",
    "SnapshotOrchestrator",
    "SnapshotStore",
    "is_snapshot_expired",
    "make_metric_key",
]
