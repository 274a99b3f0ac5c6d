"""Tests for src/snapshot/database.py."""

from __future__ import annotations

from pathlib import Path

import pytest

from src.core.exceptions import StorageError
from src.snapshot.database import Database


class TestDatabase:
    """Database 연결 / 스키마 테스트."""

    @pytest.mark.asyncio()
    async def test_schema_created(self, db: Database) -> None:
        cursor = await db.connection.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='metric_snapshots'"
        )
        assert await cursor.fetchone() is not None

    @pytest.mark.asyncio()
    async def test_wal_mode_on_file(self, tmp_path: Path) -> None:
        async with Database(tmp_path / "nested" / "snapshots.db") as database:
            cursor = await database.connection.execute("PRAGMA journal_mode")
            row = await cursor.fetchone()
        assert row is not None
        assert str(row[0]).lower() == "wal"
        assert (tmp_path / "nested" / "snapshots.db").exists()

    @pytest.mark.asyncio()
    async def test_connect_idempotent(self, db: Database) -> None:
        conn = db.connection
        await db.connect()
        assert db.connection is conn

    def test_connection_before_connect_raises(self) -> None:
        with pytest.raises(StorageError, match="not connected"):
            _ = Database(":memory:").connection

    @pytest.mark.asyncio()
    async def test_close_resets_connection(self) -> None:
        database = Database(":memory:")
        await database.connect()
        await database.close()

        with pytest.raises(StorageError):
            _ = database.connection
