"""Capability-based access control.

전역 role registry 없이, 호출자는 자신이 가진 capability를 담은 CallContext를
각 변경 진입점에 전달합니다. 어떤 주체에게 어떤 capability를 줄지는 외부
access-control collaborator의 몫입니다.

Capability Classes:
    - ADMIN: 파라미터 변경, pause, emergency withdraw, breaker reset
    - KEEPER: epoch tick 호출만 가능
    - ORCHESTRATOR: Vault가 ReserveStrategy의 deploy/withdraw/rebalance/harvest 호출

Rules Applied:
    - #11 Pydantic Modeling: frozen=True
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from vstrc.core.exceptions import UnauthorizedError


class Capability(StrEnum):
    """진입점 capability."""

    ADMIN = "admin"
    KEEPER = "keeper"
    ORCHESTRATOR = "orchestrator"


class CallContext(BaseModel):
    """호출자 식별 + 보유 capability.

    Attributes:
        caller: 호출자 계정 ID (토큰 잔고 주체와 동일)
        capabilities: 보유 capability 집합
    """

    model_config = ConfigDict(frozen=True)

    caller: str = Field(min_length=1)
    capabilities: frozenset[Capability] = Field(default_factory=frozenset)

    def has(self, capability: Capability) -> bool:
        """capability 보유 여부."""
        return capability in self.capabilities

    def require(self, *capabilities: Capability) -> None:
        """나열된 capability 중 하나라도 없으면 UnauthorizedError.

        Args:
            *capabilities: 허용되는 capability 목록 (OR 조건)

        Raises:
            UnauthorizedError: 어떤 capability도 보유하지 않은 경우
        """
        if any(cap in self.capabilities for cap in capabilities):
            return
        msg = "Missing required capability"
        raise UnauthorizedError(
            msg,
            context={
                "caller": self.caller,
                "required": "|".join(str(c) for c in capabilities),
            },
        )

    # ==========================================================================
    # Factory helpers
    # ==========================================================================
    @classmethod
    def user(cls, caller: str) -> CallContext:
        """capability 없는 일반 사용자 컨텍스트."""
        return cls(caller=caller)

    @classmethod
    def admin(cls, caller: str) -> CallContext:
        return cls(caller=caller, capabilities=frozenset({Capability.ADMIN}))

    @classmethod
    def keeper(cls, caller: str) -> CallContext:
        return cls(caller=caller, capabilities=frozenset({Capability.KEEPER}))

    @classmethod
    def orchestrator(cls, caller: str) -> CallContext:
        return cls(caller=caller, capabilities=frozenset({Capability.ORCHESTRATOR}))
