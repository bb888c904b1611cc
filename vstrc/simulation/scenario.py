"""YAML simulation scenario models.

Example YAML:
    name: peg-stress
    start_timestamp: 1700000000
    lending_apy_bps: 500
    prices:
      WBTC: {price: 9700000000000, decimals: 8}
      USDC: {price: 100000000, decimals: 8}
      vSTRC: {price: 100000000, decimals: 6}
    dex_liquidity:
      USDC: 100000000000000
      WBTC: 100000000000
    deposits:
      - {account: alice, amount: 50000000000}
    epochs:
      - {share_price: 90000000}
      - {share_price: 110000000, volatile_price: 10200000000000}

Rules Applied:
    - #11 Pydantic Modeling: frozen=True
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field

from vstrc.config.config_loader import ProtocolConfig
from vstrc.models.types import BASIS_POINTS


class FeedPrice(BaseModel):
    """초기 feed 가격 (feed 고유 decimals)."""

    model_config = ConfigDict(frozen=True)

    price: int = Field(gt=0)
    decimals: int = Field(ge=0, le=36)


class DepositStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    account: str = Field(min_length=1)
    amount: int = Field(gt=0, description="stable 최소 단위")


class RedeemStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    account: str = Field(min_length=1)
    fraction_bps: int = Field(default=BASIS_POINTS, gt=0, le=BASIS_POINTS)


class EpochStep(BaseModel):
    """에폭 1회 분량의 시장 변화 + 사용자 행동.

    Attributes:
        share_price: 지분 시장가 (vSTRC feed decimals). None이면 직전 값 유지
        volatile_price: 변동성 자산 가격 (feed decimals). None이면 직전 값 유지
        deposits: tick 전 예치
        redemptions: tick 전 상환
    """

    model_config = ConfigDict(frozen=True)

    share_price: int | None = Field(default=None, gt=0)
    volatile_price: int | None = Field(default=None, gt=0)
    deposits: list[DepositStep] = Field(default_factory=list)
    redemptions: list[RedeemStep] = Field(default_factory=list)


def _default_prices() -> dict[str, FeedPrice]:
    return {
        "WBTC": FeedPrice(price=97_000 * 10**8, decimals=8),
        "USDC": FeedPrice(price=10**8, decimals=8),
        "vSTRC": FeedPrice(price=100 * 10**6, decimals=6),
    }


class Scenario(BaseModel):
    """시뮬레이션 시나리오."""

    model_config = ConfigDict(frozen=True)

    name: str = "scenario"
    start_timestamp: int = Field(default=1_700_000_000, ge=0)
    protocol: ProtocolConfig = Field(default_factory=ProtocolConfig)
    prices: dict[str, FeedPrice] = Field(default_factory=_default_prices)
    dex_liquidity: dict[str, int] = Field(default_factory=dict)
    dex_fee_bps: int = Field(default=30, ge=0, lt=BASIS_POINTS)
    lending_apy_bps: int = Field(default=500, ge=0, le=BASIS_POINTS)
    reset_breaker_on_trip: bool = False
    deposits: list[DepositStep] = Field(default_factory=list)
    epochs: list[EpochStep] = Field(default_factory=list)


def load_scenario(path: str | Path) -> Scenario:
    """YAML → Scenario.

    Raises:
        FileNotFoundError: 파일이 존재하지 않을 경우
    """
    file_path = Path(path)
    if not file_path.exists():
        msg = f"Scenario file not found: {file_path}"
        raise FileNotFoundError(msg)
    raw = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    return Scenario.model_validate(raw or {})
