"""Vault configuration and report models.

Rules Applied:
    - #11 Pydantic Modeling: frozen=True, field/model validators
    - #23 Exception Handling: 검증 실패 시 명확한 에러
"""

from __future__ import annotations

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from vstrc.models.types import (
    BASIS_POINTS,
    SECONDS_PER_DAY,
    SHARE_ASSET,
    STABLE_ASSET,
    EpochPhase,
    PegState,
)

DEFAULT_TARGET_PRICE = 100_000_000  # $100 (6 decimals)
DEFAULT_EPOCH_DURATION = 7 * SECONDS_PER_DAY


class RateParameters(BaseModel):
    """Self-tuning 배당률 파라미터 (bps).

    Invariant: min_rate <= base_rate <= max_rate <= 10_000

    Example:
        >>> RateParameters(base_rate=1000, sensitivity=3000, min_rate=200, max_rate=3000)
    """

    model_config = ConfigDict(frozen=True)

    base_rate: int = Field(default=800, ge=0, description="기준 금리 (8%)")
    sensitivity: int = Field(default=2000, ge=0, description="괴리 100%당 조정 (20%)")
    min_rate: int = Field(default=100, ge=0, description="하한 (1%)")
    max_rate: int = Field(default=2500, ge=0, le=BASIS_POINTS, description="상한 (25%)")

    @model_validator(mode="after")
    def validate_bounds(self) -> Self:
        """min_rate <= base_rate <= max_rate 검증."""
        if not self.min_rate <= self.base_rate <= self.max_rate:
            msg = (
                f"Rate bounds violated: min_rate ({self.min_rate}) <= base_rate "
                f"({self.base_rate}) <= max_rate ({self.max_rate})"
            )
            raise ValueError(msg)
        return self


class DepositLimits(BaseModel):
    """예치 한도 (stable 최소 단위).

    Attributes:
        min_deposit: 최소 예치 ($1)
        max_single_deposit: 단일 예치 상한
        max_total_deposits: vault 총자산 상한
    """

    model_config = ConfigDict(frozen=True)

    min_deposit: int = Field(default=1_000_000, gt=0)
    max_single_deposit: int = Field(default=10_000_000 * 1_000_000, gt=0)
    max_total_deposits: int = Field(default=1_000_000_000 * 1_000_000, gt=0)

    @model_validator(mode="after")
    def validate_ordering(self) -> Self:
        """min <= max_single <= max_total 검증."""
        if not self.min_deposit <= self.max_single_deposit <= self.max_total_deposits:
            msg = (
                "Deposit limits must satisfy min_deposit <= max_single_deposit "
                "<= max_total_deposits"
            )
            raise ValueError(msg)
        return self


class VaultConfig(BaseModel):
    """Vault 전체 설정.

    Attributes:
        name: 지분 토큰 이름
        symbol: 지분 토큰 심볼 (오라클 자산 ID로도 사용)
        asset_id: 예치 자산 ID
        account_id: vault의 토큰 계정 ID
        target_price: 목표 지분 가격 (stable 최소 단위)
        epoch_duration: 에폭 길이 (초)
        liquidity_buffer_bps: deploy 시 남겨둘 idle 비율 (min_deposit과 큰 값)
        rates: 배당률 파라미터
        limits: 예치 한도
    """

    model_config = ConfigDict(frozen=True)

    name: str = "Variable STRC Vault"
    symbol: str = SHARE_ASSET
    asset_id: str = STABLE_ASSET
    account_id: str = "vault"
    target_price: int = Field(default=DEFAULT_TARGET_PRICE, gt=0)
    epoch_duration: int = Field(default=DEFAULT_EPOCH_DURATION, gt=0)
    liquidity_buffer_bps: int = Field(default=100, ge=0, le=BASIS_POINTS)
    rates: RateParameters = Field(default_factory=RateParameters)
    limits: DepositLimits = Field(default_factory=DepositLimits)


class EpochReport(BaseModel):
    """에폭 tick 결과.

    Attributes:
        epoch: tick 이후 epoch_count
        phase: 종료 상태 (항상 SETTLED)
        market_price: 검증된 시장가 (target 단위)
        peg: 페그 위치
        new_rate: 새 배당률 (bps)
        total_assets: tick 시작 시 총자산
        dividend: 에폭 목표 배당액
        harvested: 회수한 lending 이자
        liquidated: 배당 유동성 확보를 위해 청산 요청한 금액
        withdrawn: 전략에서 vault idle로 회수한 금액
        deployed: vault idle에서 전략으로 투입한 금액
        assets_per_share_before: 리밸런싱 전 지분당 자산
        assets_per_share_after: 리밸런싱 후 지분당 자산
        accumulated_yield_per_share: 누적 실현 지분당 수익
        epoch_timestamp: 갱신된 last_epoch_timestamp
    """

    model_config = ConfigDict(frozen=True)

    epoch: int
    phase: EpochPhase = EpochPhase.SETTLED
    market_price: int
    peg: PegState
    new_rate: int
    total_assets: int
    dividend: int
    harvested: int = 0
    liquidated: int = 0
    withdrawn: int = 0
    deployed: int = 0
    assets_per_share_before: int
    assets_per_share_after: int
    accumulated_yield_per_share: int
    epoch_timestamp: int
