"""StateStore — protocol 상태 저장/복구.

protocol_state 테이블에 participant(vault, strategy, 시뮬레이션 venue) 상태를
버전 태그가 붙은 JSON으로 저장합니다. 한 트랜잭션의 모든 participant는 하나의
SQLite commit으로 기록되어 재시작 시 서로 일관된 상태로 복구됩니다.

Payload:
    {"version": 1, "saved_at": "...", "state": {...}}
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from loguru import logger

from vstrc.core.clock import SystemClock

if TYPE_CHECKING:
    from collections.abc import Iterable

    from vstrc.core.clock import Clock
    from vstrc.core.transaction import Transactional
    from vstrc.models.vault import EpochReport
    from vstrc.persistence.database import Database

STATE_VERSION = 1


class StateStore:
    """participant 상태 저장소.

    Args:
        database: Database 인스턴스 (연결 완료 상태)
        clock: saved_at/recorded_at 시각 (기본 SystemClock)
    """

    def __init__(self, database: Database, clock: Clock | None = None) -> None:
        self._db = database
        self._clock = clock if clock is not None else SystemClock()

    def _timestamp(self) -> str:
        return datetime.fromtimestamp(self._clock.now(), UTC).isoformat()

    # =========================================================================
    # 저장
    # =========================================================================

    async def save_participants(self, participants: Iterable[Transactional]) -> None:
        """모든 participant 상태를 단일 commit으로 저장."""
        now = self._timestamp()
        count = 0
        async with self._db.transaction() as conn:
            for participant in participants:
                payload = {
                    "version": STATE_VERSION,
                    "saved_at": now,
                    "state": participant.to_dict(),
                }
                await conn.execute(
                    "INSERT OR REPLACE INTO protocol_state (key, value, updated_at) "
                    "VALUES (?, ?, ?)",
                    (participant.state_key, json.dumps(payload), now),
                )
                count += 1
        logger.debug("Protocol state saved ({} participants)", count)

    async def save_epoch_report(self, report: EpochReport) -> None:
        async with self._db.transaction() as conn:
            await conn.execute(
                "INSERT OR REPLACE INTO epoch_reports "
                "(epoch, epoch_timestamp, market_price, new_rate, dividend, payload, recorded_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    report.epoch,
                    report.epoch_timestamp,
                    report.market_price,
                    report.new_rate,
                    str(report.dividend),
                    report.model_dump_json(),
                    self._timestamp(),
                ),
            )

    # =========================================================================
    # 로드
    # =========================================================================

    async def load(self, key: str) -> dict[str, Any] | None:
        """key의 participant 상태. 없거나 버전 불일치면 None."""
        conn = self._db.connection
        cursor = await conn.execute("SELECT value FROM protocol_state WHERE key = ?", (key,))
        row = await cursor.fetchone()
        if row is None:
            return None
        payload = json.loads(row[0])
        version = payload.get("version")
        if version != STATE_VERSION:
            logger.warning(
                "Ignoring state {} with version {} (expected {})", key, version, STATE_VERSION
            )
            return None
        return payload["state"]  # type: ignore[no-any-return]

    async def load_all(self) -> dict[str, dict[str, Any]]:
        """저장된 모든 participant 상태 (key → state)."""
        conn = self._db.connection
        cursor = await conn.execute("SELECT key, value FROM protocol_state ORDER BY key")
        rows = await cursor.fetchall()
        states: dict[str, dict[str, Any]] = {}
        for key, raw in rows:
            payload = json.loads(raw)
            if payload.get("version") == STATE_VERSION:
                states[key] = payload["state"]
        return states

    async def restore_participants(self, participants: Iterable[Transactional]) -> int:
        """저장된 상태가 있는 participant를 복구.

        Returns:
            복구된 participant 수
        """
        restored = 0
        for participant in participants:
            state = await self.load(participant.state_key)
            if state is None:
                continue
            participant.restore_from_dict(state)
            restored += 1
        logger.info("Restored {} participant(s) from {}", restored, self._db.path)
        return restored

    async def load_epoch_reports(self) -> list[dict[str, Any]]:
        conn = self._db.connection
        cursor = await conn.execute("SELECT payload FROM epoch_reports ORDER BY epoch")
        rows = await cursor.fetchall()
        return [json.loads(row[0]) for row in rows]

    async def last_saved_at(self) -> datetime | None:
        conn = self._db.connection
        cursor = await conn.execute("SELECT MAX(updated_at) FROM protocol_state")
        row = await cursor.fetchone()
        if row is None or row[0] is None:
            return None
        return datetime.fromisoformat(row[0])

    # =========================================================================
    # 유틸리티
    # =========================================================================

    async def clear(self) -> None:
        """모든 상태 삭제."""
        async with self._db.transaction() as conn:
            await conn.execute("DELETE FROM protocol_state")
            await conn.execute("DELETE FROM epoch_reports")
        logger.info("Protocol state cleared")
