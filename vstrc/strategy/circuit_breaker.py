"""Price-drop circuit breaker.

변동성 자산 가격이 체크포인트 대비 window 내에서 threshold 초과 하락하면
latch가 걸리고, 관리자가 reset할 때까지 모든 자본 이동을 거부합니다.

상태는 트랜잭션 snapshot에서 제외되어 발동을 유발한 작업이 롤백되어도 유지됩니다.

Rules Applied:
    - RiskManager circuit breaker 패턴 (flag + 명시적 reset)
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from vstrc.core.exceptions import CircuitBreakerActiveError
from vstrc.models.strategy import CircuitBreakerConfig
from vstrc.models.types import BASIS_POINTS


class CircuitBreaker:
    """체크포인트 기반 하락 감지 latch.

    Args:
        config: threshold/window 설정

    Example:
        >>> breaker = CircuitBreaker(CircuitBreakerConfig())
        >>> breaker.observe(price=100_000, now=0)      # 체크포인트 설정
        >>> breaker.observe(price=75_000, now=600)     # 25% 하락 → 2500 반환, tripped
    """

    def __init__(self, config: CircuitBreakerConfig | None = None) -> None:
        self._config = config or CircuitBreakerConfig()
        self._tripped = False
        self._checkpoint_price = 0
        self._checkpoint_timestamp = 0

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    @property
    def tripped(self) -> bool:
        return self._tripped

    @property
    def checkpoint_price(self) -> int:
        return self._checkpoint_price

    @property
    def checkpoint_timestamp(self) -> int:
        return self._checkpoint_timestamp

    def reconfigure(self, config: CircuitBreakerConfig) -> None:
        self._config = config

    def ensure_open(self) -> None:
        """발동 상태면 CircuitBreakerActiveError."""
        if self._tripped:
            msg = "Circuit breaker is tripped"
            raise CircuitBreakerActiveError(
                msg,
                context={
                    "checkpoint_price": self._checkpoint_price,
                    "checkpoint_timestamp": self._checkpoint_timestamp,
                },
            )

    @staticmethod
    def drop_bps(checkpoint_price: int, current_price: int) -> int:
        """체크포인트 대비 하락폭 (bps, 상승 시 0)."""
        if checkpoint_price <= 0 or current_price >= checkpoint_price:
            return 0
        return (checkpoint_price - current_price) * BASIS_POINTS // checkpoint_price

    def observe(self, price: int, now: int) -> int | None:
        """현재 가격 관측.

        체크포인트가 없거나 window를 벗어났으면 체크포인트를 현재 가격으로 옮깁니다.
        window 내 하락폭이 threshold를 초과하면 latch를 걸고 하락폭을 반환합니다.

        Returns:
            발동 시 하락폭 (bps), 아니면 None
        """
        elapsed = now - self._checkpoint_timestamp
        if self._checkpoint_price <= 0 or elapsed > self._config.window_seconds:
            self.checkpoint(price, now)
            return None

        drop = self.drop_bps(self._checkpoint_price, price)
        if drop > self._config.threshold_bps:
            self._tripped = True
            logger.critical(
                "CIRCUIT BREAKER TRIPPED: price {} -> {} ({} bps > {} bps)",
                self._checkpoint_price,
                price,
                drop,
                self._config.threshold_bps,
            )
            return drop
        return None

    def checkpoint(self, price: int, now: int) -> None:
        self._checkpoint_price = price
        self._checkpoint_timestamp = now
        logger.debug("Breaker checkpoint set to {} at {}", price, now)

    def reset(self, price: int, now: int) -> None:
        """latch 해제 + 현재 가격으로 체크포인트 재설정."""
        self._tripped = False
        self.checkpoint(price, now)

    # ── Persistence ───────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "tripped": self._tripped,
            "checkpoint_price": self._checkpoint_price,
            "checkpoint_timestamp": self._checkpoint_timestamp,
            "threshold_bps": self._config.threshold_bps,
            "window_seconds": self._config.window_seconds,
        }

    def restore_from_dict(self, state: dict[str, Any]) -> None:
        self._tripped = bool(state.get("tripped", False))
        self._checkpoint_price = int(state.get("checkpoint_price", 0))
        self._checkpoint_timestamp = int(state.get("checkpoint_timestamp", 0))
        if "threshold_bps" in state and "window_seconds" in state:
            self._config = CircuitBreakerConfig(
                threshold_bps=state["threshold_bps"],
                window_seconds=state["window_seconds"],
            )
