"""Integer fixed-point helpers.

모든 금액 계산은 int로 수행하며, 반올림 방향을 명시합니다.
"""

from __future__ import annotations

from vstrc.models.types import BASIS_POINTS, Rounding


def mul_div(a: int, b: int, denominator: int, rounding: Rounding = Rounding.DOWN) -> int:
    """a * b / denominator (음이 아닌 정수, 지정 방향 반올림).

    Args:
        a: 피승수 (>= 0)
        b: 승수 (>= 0)
        denominator: 제수 (> 0)
        rounding: DOWN(floor) 또는 UP(ceil)

    Returns:
        반올림된 정수 결과

    Raises:
        ValueError: 음수 입력 또는 0 제수
    """
    if denominator <= 0:
        msg = f"denominator must be positive: {denominator}"
        raise ValueError(msg)
    if a < 0 or b < 0:
        msg = f"mul_div operands must be non-negative: a={a}, b={b}"
        raise ValueError(msg)
    product = a * b
    if rounding is Rounding.UP:
        return -(-product // denominator)
    return product // denominator


def apply_bps(amount: int, bps: int, rounding: Rounding = Rounding.DOWN) -> int:
    """amount * bps / 10_000."""
    return mul_div(amount, bps, BASIS_POINTS, rounding)


def rescale(
    amount: int, from_decimals: int, to_decimals: int, rounding: Rounding = Rounding.DOWN
) -> int:
    """decimals 간 단위 변환.

    Example:
        >>> rescale(97_000_00000000, 8, 6)
        97000000000
    """
    if from_decimals == to_decimals:
        return amount
    if to_decimals > from_decimals:
        return amount * 10 ** (to_decimals - from_decimals)
    return mul_div(amount, 1, 10 ** (from_decimals - to_decimals), rounding)
