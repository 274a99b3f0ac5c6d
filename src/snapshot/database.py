"""Database 연결 관리자: aiosqlite WAL 모드.

단일 aiosqlite.Connection을 관리하며, 스냅샷 스키마 자동 생성을 포함합니다.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite
from loguru import logger

from src.core.exceptions import StorageError
from src.snapshot.schema import SCHEMA_SQL


class Database:
    """aiosqlite 연결 수명 관리자.

    Args:
        db_path: SQLite 파일 경로. ":memory:" 시 인메모리 DB (테스트용).

    Example:
        >>> async with Database(":memory:") as db:
        ...     await db.connection.execute("SELECT 1")
    """

    def __init__(self, db_path: str | Path = "data/snapshots.db") -> None:
        self._db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None

    @property
    def path(self) -> str:
        return self._db_path

    async def connect(self) -> None:
        """DB 연결 + WAL 모드 + 스키마 생성.

        Raises:
            StorageError: 연결 또는 스키마 생성 실패
        """
        if self._conn is not None:
            return
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = await aiosqlite.connect(self._db_path)
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._conn.execute("PRAGMA synchronous=NORMAL")
            await self._create_schema()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to open database: {e}", context={"path": self._db_path}) from e
        logger.info("Database connected: {}", self._db_path)

    async def close(self) -> None:
        """DB 연결 종료."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("Database closed: {}", self._db_path)

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    @property
    def connection(self) -> aiosqlite.Connection:
        """활성 연결 반환. 연결 안 됐으면 StorageError."""
        if self._conn is None:
            msg = "Database not connected. Call connect() first."
            raise StorageError(msg, context={"path": self._db_path})
        return self._conn

    async def _create_schema(self) -> None:
        """멱등 스키마 생성."""
        conn = self.connection
        await conn.executescript(SCHEMA_SQL)
        await conn.commit()
