"""Self-tuning rate controller (pure, stateless).

시장가와 목표가의 괴리(deviation)를 bounded 변동 배당률로 변환합니다.

    market <= target:  rate = base + sensitivity * deviation   (max_rate로 상한)
    market >  target:  rate = base - sensitivity * deviation   (조정폭 >= base 이면 min_rate)
    최종적으로 [min_rate, max_rate]로 무조건 clamp (파라미터 오설정 방어)

모든 값은 정수 basis points / 자산 최소 단위입니다.

Example:
    >>> variable_rate(100_000_000, 90_000_000, 800, 2000, 100, 2500)
    1000
    >>> variable_rate(100_000_000, 110_000_000, 800, 2000, 100, 2500)
    600
"""

from __future__ import annotations

import math

from vstrc.core.exceptions import InvalidParameterError
from vstrc.models.types import BASIS_POINTS, PRECISION, SECONDS_PER_YEAR, PegState


def clamp_rate(rate: int, min_rate: int, max_rate: int) -> int:
    """rate를 [min_rate, max_rate]로 제한."""
    return max(min_rate, min(rate, max_rate))


def price_deviation_bps(target_price: int, market_price: int) -> int:
    """|market - target| / target (bps, 0 방향 절사).

    Raises:
        InvalidParameterError: target_price <= 0
    """
    if target_price <= 0:
        msg = "Target price must be positive"
        raise InvalidParameterError(msg, context={"target_price": target_price})
    return abs(target_price - market_price) * BASIS_POINTS // target_price


def peg_state(target_price: int, market_price: int) -> PegState:
    """시장가의 페그 위치."""
    if market_price < target_price:
        return PegState.BELOW
    if market_price > target_price:
        return PegState.ABOVE
    return PegState.AT


def variable_rate(
    target_price: int,
    market_price: int,
    base_rate: int,
    sensitivity: int,
    min_rate: int,
    max_rate: int,
) -> int:
    """가격 괴리 기반 변동 배당률 (bps).

    Args:
        target_price: 목표가 (stable 단위)
        market_price: 시장가 (target_price와 같은 단위)
        base_rate: 기준 금리 (bps)
        sensitivity: 괴리 1(=100%)당 금리 조정 (bps)
        min_rate: 하한 (bps)
        max_rate: 상한 (bps)

    Returns:
        [min_rate, max_rate] 범위의 금리 (bps)

    Raises:
        InvalidParameterError: target_price <= 0 또는 min_rate > max_rate
    """
    if min_rate > max_rate:
        msg = "min_rate must not exceed max_rate"
        raise InvalidParameterError(msg, context={"min_rate": min_rate, "max_rate": max_rate})

    deviation = price_deviation_bps(target_price, market_price)
    adjustment = sensitivity * deviation // BASIS_POINTS

    if market_price <= target_price:
        rate = min(base_rate + adjustment, max_rate)
    elif adjustment < base_rate:
        rate = base_rate - adjustment
    else:
        rate = min_rate

    return clamp_rate(rate, min_rate, max_rate)


def epoch_dividend(total_assets: int, rate: int, epoch_duration: int) -> int:
    """에폭당 목표 배당액.

    total_assets * rate * epoch_duration / (BPS * SECONDS_PER_YEAR), 0 방향 절사.
    절사로 인한 체계적 과소 배분은 허용합니다 (올림하지 않음).
    """
    if total_assets <= 0 or rate <= 0 or epoch_duration <= 0:
        return 0
    return total_assets * rate * epoch_duration // (BASIS_POINTS * SECONDS_PER_YEAR)


def projected_annual_dividend(total_assets: int, rate: int) -> int:
    """현재 금리 기준 연환산 배당액."""
    if total_assets <= 0 or rate <= 0:
        return 0
    return total_assets * rate // BASIS_POINTS


def collateral_ratio(reserve_value: int, cash_value: int, total_liabilities: int) -> int | float:
    """담보 비율 (PRECISION 스케일).

    Returns:
        total_liabilities == 0 이면 math.inf, 아니면
        (reserve_value + cash_value) * PRECISION // total_liabilities
    """
    if total_liabilities == 0:
        return math.inf
    return (reserve_value + cash_value) * PRECISION // total_liabilities
