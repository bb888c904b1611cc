"""Pure integer math: fixed-point helpers and the rate controller."""

from vstrc.engine.fixed_point import apply_bps, mul_div, rescale
from vstrc.engine.rate_controller import (
    clamp_rate,
    collateral_ratio,
    epoch_dividend,
    peg_state,
    price_deviation_bps,
    projected_annual_dividend,
    variable_rate,
)

__all__ = [
    "apply_bps",
    "clamp_rate",
    "collateral_ratio",
    "epoch_dividend",
    "mul_div",
    "peg_state",
    "price_deviation_bps",
    "projected_annual_dividend",
    "rescale",
    "variable_rate",
]
