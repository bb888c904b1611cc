"""데이터 영속화 패키지 — SQLite via aiosqlite.

Database(연결 관리)와 StateStore(participant 상태 저장/복구)를 제공합니다.
"""

from vstrc.persistence.database import Database
from vstrc.persistence.state_store import STATE_VERSION, StateStore

__all__ = ["STATE_VERSION", "Database", "StateStore"]
