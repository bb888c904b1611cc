"""Reserve strategy: volatile reserve + yield-bearing cash reserve."""

from vstrc.strategy.circuit_breaker import CircuitBreaker
from vstrc.strategy.ports import StrategyPort
from vstrc.strategy.reserve_strategy import ReserveStrategy

__all__ = ["CircuitBreaker", "ReserveStrategy", "StrategyPort"]
