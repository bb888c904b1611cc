"""Single serialized transaction log.

모든 상태 변경 작업(deposit, withdraw, epoch tick, rebalance, harvest)은
TransactionManager.atomic() 안에서 실행됩니다.

동작:
    1. 최외곽 블록은 asyncio.Lock으로 직렬화되고, 등록된 모든 participant의
       snapshot을 뜹니다.
    2. 중첩 블록(vault → strategy 호출)은 진행 중인 트랜잭션에 합류합니다.
    3. 예외 발생 시 모든 participant를 snapshot으로 복원하고 예외를 재발생합니다.
       participant가 snapshot에서 제외한 sticky 필드(서킷브레이커 latch)는 유지됩니다.
    4. 성공 시 StateStore에 영속화(실패하면 롤백)한 뒤 버퍼링된 감사 이벤트를 기록합니다.

Rules Applied:
    - #23 Exception Handling: 실패 시 이전 상태 보존
    - #10 Python Standards: contextvars, asynccontextmanager
"""

from __future__ import annotations

import asyncio
import copy
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from loguru import logger

from vstrc.logging.context import current_operation, current_operation_id, generate_operation_id

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from vstrc.core.audit import AnyAuditEvent, AuditLog


@runtime_checkable
class Transactional(Protocol):
    """트랜잭션 participant 인터페이스.

    snapshot()/restore()는 롤백용 (sticky 필드 제외),
    to_dict()/restore_from_dict()는 영속화용 (전체 상태)입니다.
    """

    @property
    def state_key(self) -> str:
        """영속화 key (participant 간 유일)."""
        ...

    def snapshot(self) -> dict[str, Any]:
        """롤백 가능한 상태 snapshot."""
        ...

    def restore(self, snapshot: dict[str, Any]) -> None:
        """snapshot으로 복원."""
        ...

    def to_dict(self) -> dict[str, Any]:
        """영속화용 전체 상태."""
        ...

    def restore_from_dict(self, state: dict[str, Any]) -> None:
        """영속화된 상태 복구."""
        ...


class StatePersister(Protocol):
    """participant 상태 저장소 (vstrc.persistence.StateStore가 구현)."""

    async def save_participants(self, participants: Iterable[Transactional]) -> None: ...


class Transaction:
    """진행 중인 트랜잭션 핸들.

    Attributes:
        name: 최외곽 operation 이름
        operation_id: 로그/이벤트 상관관계 ID
    """

    __slots__ = ("_events", "_manager", "_sticky_events", "name", "operation_id")

    def __init__(self, manager: TransactionManager, name: str) -> None:
        self._manager = manager
        self.name = name
        self.operation_id = generate_operation_id()
        self._events: list[AnyAuditEvent] = []
        self._sticky_events: list[AnyAuditEvent] = []

    @property
    def manager(self) -> TransactionManager:
        return self._manager

    def emit(self, event: AnyAuditEvent, *, sticky: bool = False) -> None:
        """감사 이벤트 버퍼링.

        Args:
            event: 감사 이벤트
            sticky: True면 롤백되어도 기록 (서킷브레이커 발동 등)
        """
        self._events.append(event)
        if sticky:
            self._sticky_events.append(event)

    @property
    def events(self) -> tuple[AnyAuditEvent, ...]:
        return tuple(self._events)

    @property
    def sticky_events(self) -> tuple[AnyAuditEvent, ...]:
        return tuple(self._sticky_events)


_ACTIVE_TX: ContextVar[Transaction | None] = ContextVar("active_transaction", default=None)


class TransactionManager:
    """participant 등록 + 원자적 실행 컨텍스트.

    Args:
        audit_log: 커밋된 이벤트 기록 대상 (선택)
        store: participant 상태 저장소 (선택)
    """

    def __init__(
        self,
        *,
        audit_log: AuditLog | None = None,
        store: StatePersister | None = None,
    ) -> None:
        self._participants: dict[str, Transactional] = {}
        self._audit_log = audit_log
        self._store = store
        self._lock = asyncio.Lock()
        self._committed = 0
        self._rolled_back = 0

    # ── Registration ──────────────────────────────────────────────

    def register(self, participant: Transactional) -> None:
        """participant 등록 (state_key 중복 불가)."""
        key = participant.state_key
        existing = self._participants.get(key)
        if existing is not None and existing is not participant:
            msg = f"Duplicate transactional participant: {key}"
            raise ValueError(msg)
        self._participants[key] = participant

    @property
    def participants(self) -> tuple[Transactional, ...]:
        return tuple(self._participants.values())

    def attach_store(self, store: StatePersister | None) -> None:
        self._store = store

    def attach_audit_log(self, audit_log: AuditLog | None) -> None:
        self._audit_log = audit_log

    @property
    def stats(self) -> dict[str, int]:
        return {"committed": self._committed, "rolled_back": self._rolled_back}

    @property
    def in_transaction(self) -> bool:
        tx = _ACTIVE_TX.get()
        return tx is not None and tx.manager is self

    # ── Atomic scope ──────────────────────────────────────────────

    @asynccontextmanager
    async def atomic(self, name: str) -> AsyncIterator[Transaction]:
        """원자적 실행 scope.

        Args:
            name: operation 이름 (로그/이벤트용)

        Yields:
            Transaction 핸들 (중첩 호출 시 최외곽 트랜잭션)
        """
        active = _ACTIVE_TX.get()
        if active is not None and active.manager is self:
            yield active
            return

        async with self._lock:
            tx = Transaction(self, name)
            snapshots = {key: copy.deepcopy(p.snapshot()) for key, p in self._participants.items()}
            tx_token = _ACTIVE_TX.set(tx)
            op_token = current_operation.set(name)
            op_id_token = current_operation_id.set(tx.operation_id)
            try:
                yield tx
                await self._persist()
            except BaseException as exc:
                self._rollback(snapshots)
                self._rolled_back += 1
                logger.debug(
                    "Transaction {} rolled back ({}): {}",
                    name,
                    type(exc).__name__,
                    exc,
                )
                if tx.sticky_events:
                    await self._persist()
                    self._record(tx.sticky_events)
                raise
            else:
                self._committed += 1
                self._record(tx.events)
                logger.debug("Transaction {} committed ({} events)", name, len(tx.events))
            finally:
                current_operation_id.reset(op_id_token)
                current_operation.reset(op_token)
                _ACTIVE_TX.reset(tx_token)

    # ── Internal helpers ──────────────────────────────────────────

    def _rollback(self, snapshots: dict[str, dict[str, Any]]) -> None:
        for key, participant in self._participants.items():
            snapshot = snapshots.get(key)
            if snapshot is not None:
                participant.restore(snapshot)

    async def _persist(self) -> None:
        if self._store is not None:
            await self._store.save_participants(self._participants.values())

    def _record(self, events: Iterable[AnyAuditEvent]) -> None:
        if self._audit_log is None:
            return
        for event in events:
            self._audit_log.append(event)
