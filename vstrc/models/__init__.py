"""Pydantic models and shared constants."""

from vstrc.models.oracle import OracleAssetConfig, PriceQuote, ValidatedPrice
from vstrc.models.strategy import AllocationSplit, CircuitBreakerConfig, StrategyConfig
from vstrc.models.types import (
    BASIS_POINTS,
    PRECISION,
    SECONDS_PER_YEAR,
    EpochPhase,
    PegState,
    Rounding,
)
from vstrc.models.vault import DepositLimits, EpochReport, RateParameters, VaultConfig

__all__ = [
    "BASIS_POINTS",
    "PRECISION",
    "SECONDS_PER_YEAR",
    "AllocationSplit",
    "CircuitBreakerConfig",
    "DepositLimits",
    "EpochPhase",
    "EpochReport",
    "OracleAssetConfig",
    "PegState",
    "PriceQuote",
    "RateParameters",
    "Rounding",
    "StrategyConfig",
    "ValidatedPrice",
    "VaultConfig",
]
