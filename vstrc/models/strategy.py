"""ReserveStrategy configuration models.

Rules Applied:
    - #11 Pydantic Modeling: frozen=True, model validators
"""

from __future__ import annotations

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from vstrc.models.types import BASIS_POINTS, SECONDS_PER_HOUR, STABLE_ASSET, VOLATILE_ASSET


class AllocationSplit(BaseModel):
    """변동성 자산 / 현금 준비금 배분 비율 (bps, 합계 10_000).

    Example:
        >>> AllocationSplit(volatile_bps=8000, cash_bps=2000)
    """

    model_config = ConfigDict(frozen=True)

    volatile_bps: int = Field(default=8000, ge=0, le=BASIS_POINTS)
    cash_bps: int = Field(default=2000, ge=0, le=BASIS_POINTS)

    @model_validator(mode="after")
    def validate_sum(self) -> Self:
        """volatile_bps + cash_bps == 10_000 검증."""
        if self.volatile_bps + self.cash_bps != BASIS_POINTS:
            msg = (
                f"Allocation must sum to {BASIS_POINTS} bps "
                f"(got {self.volatile_bps} + {self.cash_bps})"
            )
            raise ValueError(msg)
        return self


class CircuitBreakerConfig(BaseModel):
    """서킷브레이커 설정.

    Attributes:
        threshold_bps: window 내 허용 최대 하락폭 (2000 = 20%)
        window_seconds: 체크포인트 유지 window (3600 = 1시간)
    """

    model_config = ConfigDict(frozen=True)

    threshold_bps: int = Field(default=2000, gt=0, lt=BASIS_POINTS)
    window_seconds: int = Field(default=SECONDS_PER_HOUR, gt=0)


class StrategyConfig(BaseModel):
    """ReserveStrategy 전체 설정.

    Attributes:
        account_id: 전략 토큰 계정 ID
        stable_asset: 스테이블 자산 ID (예치 자산과 동일)
        volatile_asset: 변동성 자산 ID
        allocation: 배분 비율
        max_slippage_bps: 오라클 기대값 대비 허용 슬리피지
        swap_deadline_seconds: 스왑 deadline (now + N초)
        circuit_breaker: 서킷브레이커 설정
    """

    model_config = ConfigDict(frozen=True)

    account_id: str = "strategy"
    stable_asset: str = STABLE_ASSET
    volatile_asset: str = VOLATILE_ASSET
    allocation: AllocationSplit = Field(default_factory=AllocationSplit)
    max_slippage_bps: int = Field(default=100, ge=0, lt=BASIS_POINTS)
    swap_deadline_seconds: int = Field(default=300, gt=0)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
