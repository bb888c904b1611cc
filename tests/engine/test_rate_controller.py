"""RateController / fixed-point 테스트.

목표가 $100, base 8%, sensitivity 20%, 범위 [1%, 25%] 기준 시나리오를 검증합니다.
"""

import math

import pytest

from vstrc.core.exceptions import InvalidParameterError
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
from vstrc.models.types import PRECISION, SECONDS_PER_YEAR, PegState, Rounding

TARGET = 100_000_000
DEFAULTS = {"base_rate": 800, "sensitivity": 2000, "min_rate": 100, "max_rate": 2500}


def _rate(market: int, **overrides: int) -> int:
    params = {**DEFAULTS, **overrides}
    return variable_rate(TARGET, market, **params)


class TestVariableRate:
    def test_below_peg_raises_rate(self) -> None:
        assert _rate(90_000_000) == 1000

    def test_above_peg_lowers_rate(self) -> None:
        assert _rate(110_000_000) == 600

    def test_at_peg_returns_base(self) -> None:
        assert _rate(TARGET) == 800

    def test_deep_discount_stays_within_cap(self) -> None:
        assert _rate(50_000_000) == 1800
        assert _rate(1_000_000) <= 2500

    def test_deep_discount_clamps_to_max(self) -> None:
        assert _rate(50_000_000, sensitivity=5000) == 2500

    def test_large_premium_floors_to_min(self) -> None:
        # deviation 5000 bps → adjustment 1000 >= base 800
        assert _rate(150_000_000) == 100

    def test_adjustment_equal_to_base_floors(self) -> None:
        # deviation 4000 bps → adjustment exactly 800
        assert _rate(140_000_000) == 100

    def test_result_always_within_bounds(self) -> None:
        for market in range(1_000_000, 300_000_000, 7_000_000):
            rate = _rate(market)
            assert 100 <= rate <= 2500

    @pytest.mark.parametrize("sensitivity", [0, 500, 2000, 5000, 10_000])
    def test_non_increasing_in_market_price(self, sensitivity: int) -> None:
        markets = sorted(
            {*range(1_000_000, 300_000_000, 3_333_333), TARGET - 1, TARGET, TARGET + 1}
        )
        rates = [_rate(market, sensitivity=sensitivity) for market in markets]
        for cheaper, dearer in zip(rates, rates[1:], strict=False):
            assert cheaper >= dearer

    def test_crossing_the_target(self) -> None:
        assert _rate(TARGET - 1_000_000) >= _rate(TARGET) >= _rate(TARGET + 1_000_000)
        assert _rate(TARGET - 1_000_000) == 820
        assert _rate(TARGET + 1_000_000) == 780

    def test_misconfigured_base_is_clamped(self) -> None:
        assert _rate(TARGET, base_rate=50) == 100
        assert _rate(TARGET, base_rate=3000) == 2500

    def test_min_above_max_rejected(self) -> None:
        with pytest.raises(InvalidParameterError):
            _rate(TARGET, min_rate=3000)

    def test_zero_target_rejected(self) -> None:
        with pytest.raises(InvalidParameterError):
            variable_rate(0, TARGET, **DEFAULTS)


class TestDeviationAndPeg:
    def test_deviation_truncates(self) -> None:
        assert price_deviation_bps(TARGET, 90_000_000) == 1000
        assert price_deviation_bps(TARGET, 99_999_999) == 0
        assert price_deviation_bps(TARGET, 110_000_000) == 1000

    def test_peg_state(self) -> None:
        assert peg_state(TARGET, 99_000_000) is PegState.BELOW
        assert peg_state(TARGET, TARGET) is PegState.AT
        assert peg_state(TARGET, 101_000_000) is PegState.ABOVE

    def test_clamp(self) -> None:
        assert clamp_rate(50, 100, 2500) == 100
        assert clamp_rate(3000, 100, 2500) == 2500
        assert clamp_rate(900, 100, 2500) == 900


class TestDividends:
    def test_epoch_dividend_floors(self) -> None:
        # 1,000,000 USDC at 10% for one year
        total = 1_000_000 * 10**6
        assert epoch_dividend(total, 1000, SECONDS_PER_YEAR) == 100_000 * 10**6
        week = epoch_dividend(total, 1000, 7 * 86_400)
        assert week == total * 1000 * 7 * 86_400 // (10_000 * SECONDS_PER_YEAR)

    def test_epoch_dividend_zero_inputs(self) -> None:
        assert epoch_dividend(0, 1000, 100) == 0
        assert epoch_dividend(100, 0, 100) == 0

    def test_projected_annual(self) -> None:
        assert projected_annual_dividend(1_000_000, 800) == 80_000

    def test_collateral_ratio(self) -> None:
        assert collateral_ratio(80, 20, 100) == PRECISION
        assert collateral_ratio(80, 40, 100) == PRECISION * 12 // 10
        assert collateral_ratio(1, 1, 0) == math.inf


class TestFixedPoint:
    def test_mul_div_rounding(self) -> None:
        assert mul_div(10, 1, 3) == 3
        assert mul_div(10, 1, 3, Rounding.UP) == 4
        assert mul_div(9, 1, 3, Rounding.UP) == 3

    def test_mul_div_rejects_bad_input(self) -> None:
        with pytest.raises(ValueError, match="denominator"):
            mul_div(1, 1, 0)
        with pytest.raises(ValueError, match="non-negative"):
            mul_div(-1, 1, 1)

    def test_apply_bps(self) -> None:
        assert apply_bps(1_000, 8000) == 800
        assert apply_bps(999, 3333, Rounding.UP) == 333

    def test_rescale(self) -> None:
        assert rescale(97_000 * 10**8, 8, 6) == 97_000 * 10**6
        assert rescale(1, 6, 8) == 100
        assert rescale(199, 8, 6) == 1
        assert rescale(199, 8, 6, Rounding.UP) == 2
