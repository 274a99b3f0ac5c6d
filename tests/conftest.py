"""Shared fixtures for tests.

이 모듈은 테스트에서 공통으로 사용되는 픽스처를 제공합니다.

Rules Applied:
    - #17 Testing Standards: Pytest fixtures
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from src.core.kv_store import InMemoryKeyValueStore
from src.data.providers.circuit_breaker import CircuitBreaker, ProviderGuard
from src.models.project import ProjectContext
from src.monitoring.metrics import OperationalCounters
from src.snapshot.database import Database
from src.snapshot.store import SnapshotStore

# ---------------------------------------------------------------------------
# 디렉토리 경로 → pytest 마커 자동 매핑
# ---------------------------------------------------------------------------
_DIR_MARKER_MAP: dict[str, str] = {
    "/data/": "data",
    "/snapshot/": "integration",
    "/cli/": "integration",
    "/analytics/": "unit",
    "/core/": "unit",
    "/models/": "unit",
    "/config/": "unit",
    "/monitoring/": "unit",
}


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """디렉토리 경로 기반 자동 마커 부여."""
    for item in items:
        fspath = str(item.fspath)
        for dir_pattern, marker_name in _DIR_MARKER_MAP.items():
            if dir_pattern in fspath:
                item.add_marker(getattr(pytest.mark, marker_name))
                break


class FakeClock:
    """수동으로 진행시키는 단조 시계 (kv store / rate limiter 주입용)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def counters() -> OperationalCounters:
    return OperationalCounters()


@pytest.fixture
def kv_store(clock: FakeClock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def breaker(kv_store: InMemoryKeyValueStore) -> CircuitBreaker:
    return CircuitBreaker(kv_store, threshold=3, open_window=60.0)


@pytest.fixture
def guard(breaker: CircuitBreaker, counters: OperationalCounters) -> ProviderGuard:
    return ProviderGuard(breaker, counters)


@pytest.fixture
def project() -> ProjectContext:
    """샘플 프로젝트 (PEPE)."""
    return ProjectContext(
        id="pepe",
        contract_address="0x6982508145454Ce325dDbE47a25d4ec3d2311933",
        chain="ethereum",
    )


@pytest.fixture
async def db() -> AsyncIterator[Database]:
    """인메모리 DB fixture."""
    database = Database(":memory:")
    await database.connect()
    yield database
    await database.close()


@pytest.fixture
def snapshot_store(db: Database) -> SnapshotStore:
    return SnapshotStore(db)
