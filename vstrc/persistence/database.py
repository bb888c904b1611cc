"""Database 연결 관리자 — aiosqlite WAL 모드.

단일 aiosqlite.Connection을 관리합니다. 연결 시 스키마를 멱등 생성하고
PRAGMA user_version으로 스키마 버전을 기록/검증합니다. 여러 participant의
상태는 transaction() 하나로 묶어 한 번에 commit 합니다.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
from loguru import logger

from vstrc.core.exceptions import DatabaseNotConnectedError, SchemaVersionError
from vstrc.persistence.schema import SCHEMA_SQL, SCHEMA_VERSION

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

MEMORY_PATH = ":memory:"


class Database:
    """aiosqlite 연결 수명 관리자.

    Args:
        db_path: SQLite 파일 경로. ":memory:" 시 인메모리 DB (테스트용).

    Example:
        >>> async with Database("data/vstrc.db") as db:
        ...     async with db.transaction() as conn:
        ...         await conn.execute("DELETE FROM epoch_reports")
    """

    def __init__(self, db_path: str | Path = "data/vstrc.db") -> None:
        self._db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    @property
    def connection(self) -> aiosqlite.Connection:
        """활성 연결.

        Raises:
            DatabaseNotConnectedError: connect() 이전 또는 close() 이후
        """
        if self._conn is None:
            msg = "Database not connected. Call connect() first."
            raise DatabaseNotConnectedError(msg, context={"path": self._db_path})
        return self._conn

    async def connect(self) -> None:
        """DB 연결 + WAL 모드 + 스키마 생성/버전 검증.

        Raises:
            SchemaVersionError: 파일의 스키마 버전이 SCHEMA_VERSION보다 높을 때
        """
        if self._db_path != MEMORY_PATH:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(self._db_path)
        try:
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA synchronous=NORMAL")
            await self._check_schema_version(conn)
        except Exception:
            await conn.close()
            raise
        self._conn = conn
        await self._create_schema()
        logger.info("Database connected: {} (schema v{})", self._db_path, SCHEMA_VERSION)

    async def close(self) -> None:
        """DB 연결 종료."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("Database closed: {}", self._db_path)

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """블록 전체를 단일 commit으로 기록. 예외 시 rollback 후 재발생."""
        conn = self.connection
        try:
            yield conn
        except Exception:
            await conn.rollback()
            logger.warning("Database transaction rolled back: {}", self._db_path)
            raise
        await conn.commit()

    async def schema_version(self) -> int:
        cursor = await self.connection.execute("PRAGMA user_version")
        row = await cursor.fetchone()
        return int(row[0]) if row is not None else 0

    async def _check_schema_version(self, conn: aiosqlite.Connection) -> None:
        cursor = await conn.execute("PRAGMA user_version")
        row = await cursor.fetchone()
        found = int(row[0]) if row is not None else 0
        if found > SCHEMA_VERSION:
            msg = "Database schema is newer than this build supports"
            raise SchemaVersionError(
                msg,
                context={"path": self._db_path, "found": found, "supported": SCHEMA_VERSION},
            )

    async def _create_schema(self) -> None:
        """멱등 스키마 생성 + user_version 기록."""
        conn = self.connection
        await conn.executescript(SCHEMA_SQL)
        await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        await conn.commit()
