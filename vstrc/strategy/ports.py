"""StrategyPort Protocol.

Vault는 이 공개 계약으로만 전략을 호출하며 전략 내부 상태에 접근하지 않습니다.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from vstrc.core.access import CallContext


@runtime_checkable
class StrategyPort(Protocol):
    """Vault가 소비하는 전략 인터페이스."""

    @property
    def strategy_id(self) -> str:
        """전략 식별자 (토큰 계정 ID)."""
        ...

    @property
    def circuit_breaker_tripped(self) -> bool:
        """서킷브레이커 발동 여부."""
        ...

    async def total_value(self) -> int:
        """전략 보유 자산 총가치 (stable 최소 단위)."""
        ...

    async def volatile_reserve_value(self) -> int:
        """변동성 자산 보유분의 오라클 가치."""
        ...

    async def cash_reserve_value(self) -> int:
        """lending venue 실잔고 (이자 포함)."""
        ...

    async def deploy(self, amount: int, ctx: CallContext) -> int:
        """orchestrator로부터 amount를 받아 배분 비율대로 투입."""
        ...

    async def withdraw(self, amount: int, ctx: CallContext) -> int:
        """최대 amount를 orchestrator에게 전달. 실제 전달량 반환."""
        ...

    async def rebalance(self, sell_volatile: bool, amount: int, ctx: CallContext) -> None:
        """변동성 자산 ↔ 현금 준비금 간 amount 만큼 이동."""
        ...

    async def harvest_yield(self, ctx: CallContext) -> int:
        """누적 이자를 orchestrator에게 전달. 회수량 반환."""
        ...

    async def withdraw_all(self, ctx: CallContext) -> int:
        """전량 청산 후 전달 (비상용). 전달량 반환."""
        ...
