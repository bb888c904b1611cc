"""Append-only audit log for off-chain indexing.

Vault/Strategy가 커밋한 상태 변경을 이벤트로 기록합니다. 이벤트는 트랜잭션 안에서
버퍼링되었다가 커밋 시점에만 기록되며, 롤백되면 버려집니다 (sticky 이벤트 제외).

Implementations:
    - InMemoryAuditLog: 테스트/시뮬레이션용
    - JsonlAuditLog: JSONL 파일 (line-buffered append)

Rules Applied:
    - #11 Pydantic Modeling: frozen=True
    - JSONL audit log 패턴 (EventBus event_log_path)
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Annotated, Literal, Protocol, runtime_checkable
from uuid import uuid4

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class AuditEventType(StrEnum):
    """감사 이벤트 타입."""

    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    SHARE_TRANSFER = "SHARE_TRANSFER"
    YIELD_REBALANCED = "YIELD_REBALANCED"
    DIVIDEND_DISTRIBUTED = "DIVIDEND_DISTRIBUTED"
    CAPITAL_DEPLOYED = "CAPITAL_DEPLOYED"
    CAPITAL_WITHDRAWN = "CAPITAL_WITHDRAWN"
    RESERVE_REBALANCED = "RESERVE_REBALANCED"
    YIELD_HARVESTED = "YIELD_HARVESTED"
    CIRCUIT_BREAKER_TRIPPED = "CIRCUIT_BREAKER_TRIPPED"
    CIRCUIT_BREAKER_RESET = "CIRCUIT_BREAKER_RESET"
    PARAMETERS_UPDATED = "PARAMETERS_UPDATED"
    PAUSE_UPDATED = "PAUSE_UPDATED"
    STRATEGY_UPDATED = "STRATEGY_UPDATED"


class BaseAuditEvent(BaseModel):
    """모든 감사 이벤트의 공통 필드."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: uuid4().hex)
    timestamp: int = Field(description="Unix seconds at emission")
    source: str = Field(description="Emitting component")
    operation_id: str | None = None


class DepositEvent(BaseAuditEvent):
    event_type: Literal[AuditEventType.DEPOSIT] = AuditEventType.DEPOSIT
    sender: str
    owner: str
    assets: int
    shares: int


class WithdrawEvent(BaseAuditEvent):
    event_type: Literal[AuditEventType.WITHDRAW] = AuditEventType.WITHDRAW
    sender: str
    receiver: str
    owner: str
    assets: int
    shares: int


class ShareTransferEvent(BaseAuditEvent):
    event_type: Literal[AuditEventType.SHARE_TRANSFER] = AuditEventType.SHARE_TRANSFER
    sender: str
    recipient: str
    shares: int


class YieldRebalancedEvent(BaseAuditEvent):
    event_type: Literal[AuditEventType.YIELD_REBALANCED] = AuditEventType.YIELD_REBALANCED
    new_rate_bps: int
    market_price: int
    target_price: int


class DividendDistributedEvent(BaseAuditEvent):
    event_type: Literal[AuditEventType.DIVIDEND_DISTRIBUTED] = AuditEventType.DIVIDEND_DISTRIBUTED
    epoch: int
    amount: int
    rate_bps: int


class CapitalDeployedEvent(BaseAuditEvent):
    event_type: Literal[AuditEventType.CAPITAL_DEPLOYED] = AuditEventType.CAPITAL_DEPLOYED
    amount: int
    volatile_acquired: int
    cash_supplied: int


class CapitalWithdrawnEvent(BaseAuditEvent):
    event_type: Literal[AuditEventType.CAPITAL_WITHDRAWN] = AuditEventType.CAPITAL_WITHDRAWN
    requested: int
    delivered: int
    volatile_sold: int


class ReserveRebalancedEvent(BaseAuditEvent):
    event_type: Literal[AuditEventType.RESERVE_REBALANCED] = AuditEventType.RESERVE_REBALANCED
    sell_volatile: bool
    amount: int
    volatile_delta: int
    cash_delta: int


class YieldHarvestedEvent(BaseAuditEvent):
    event_type: Literal[AuditEventType.YIELD_HARVESTED] = AuditEventType.YIELD_HARVESTED
    amount: int


class CircuitBreakerTrippedEvent(BaseAuditEvent):
    event_type: Literal[AuditEventType.CIRCUIT_BREAKER_TRIPPED] = (
        AuditEventType.CIRCUIT_BREAKER_TRIPPED
    )
    checkpoint_price: int
    current_price: int
    drop_bps: int


class CircuitBreakerResetEvent(BaseAuditEvent):
    event_type: Literal[AuditEventType.CIRCUIT_BREAKER_RESET] = AuditEventType.CIRCUIT_BREAKER_RESET
    checkpoint_price: int
    reset_by: str


class ParametersUpdatedEvent(BaseAuditEvent):
    event_type: Literal[AuditEventType.PARAMETERS_UPDATED] = AuditEventType.PARAMETERS_UPDATED
    updated_by: str
    section: str
    values: dict[str, int | str | bool]


class PauseUpdatedEvent(BaseAuditEvent):
    event_type: Literal[AuditEventType.PAUSE_UPDATED] = AuditEventType.PAUSE_UPDATED
    minting_paused: bool
    redeeming_paused: bool
    updated_by: str


class StrategyUpdatedEvent(BaseAuditEvent):
    event_type: Literal[AuditEventType.STRATEGY_UPDATED] = AuditEventType.STRATEGY_UPDATED
    strategy_id: str | None
    updated_by: str


AnyAuditEvent = Annotated[
    DepositEvent
    | WithdrawEvent
    | ShareTransferEvent
    | YieldRebalancedEvent
    | DividendDistributedEvent
    | CapitalDeployedEvent
    | CapitalWithdrawnEvent
    | ReserveRebalancedEvent
    | YieldHarvestedEvent
    | CircuitBreakerTrippedEvent
    | CircuitBreakerResetEvent
    | ParametersUpdatedEvent
    | PauseUpdatedEvent
    | StrategyUpdatedEvent,
    Field(discriminator="event_type"),
]

_EVENT_ADAPTER: TypeAdapter[AnyAuditEvent] = TypeAdapter(AnyAuditEvent)


def parse_audit_event(raw: str | bytes) -> AnyAuditEvent:
    """JSON 문자열 → 타입별 감사 이벤트."""
    return _EVENT_ADAPTER.validate_json(raw)


@runtime_checkable
class AuditLog(Protocol):
    """append-only 감사 로그 인터페이스."""

    def append(self, event: AnyAuditEvent) -> None:
        """이벤트 1건 기록."""
        ...


class InMemoryAuditLog:
    """메모리 감사 로그 (테스트/시뮬레이션용)."""

    def __init__(self) -> None:
        self._events: list[AnyAuditEvent] = []

    def append(self, event: AnyAuditEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> tuple[AnyAuditEvent, ...]:
        return tuple(self._events)

    def of_type(self, event_type: AuditEventType) -> list[AnyAuditEvent]:
        """타입별 필터."""
        return [e for e in self._events if e.event_type == event_type]


class JsonlAuditLog:
    """JSONL 파일 감사 로그.

    Args:
        path: JSONL 파일 경로 (부모 디렉토리 자동 생성)
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, event: AnyAuditEvent) -> None:
        with self._path.open("a", encoding="utf-8") as f:
            f.write(event.model_dump_json())
            f.write("\n")

    def read_all(self) -> list[AnyAuditEvent]:
        """파일의 모든 이벤트를 순서대로 읽기."""
        if not self._path.exists():
            return []
        events: list[AnyAuditEvent] = []
        for line_no, line in enumerate(self._path.read_text(encoding="utf-8").splitlines(), 1):
            if not line.strip():
                continue
            try:
                events.append(parse_audit_event(line))
            except ValueError:
                logger.warning("Skipping malformed audit line {} in {}", line_no, self._path)
        return events
