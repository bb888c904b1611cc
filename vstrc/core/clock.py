"""Time source abstraction.

모든 시간 판단(에폭 경과, 오라클 staleness, 스왑 deadline, 서킷브레이커 window)은
주입된 Clock의 unix seconds(int)를 사용합니다. 시뮬레이션/테스트는 ManualClock으로
결정적으로 시간을 진행시킵니다.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """현재 시각(unix seconds) 제공자."""

    def now(self) -> int:
        """현재 unix timestamp (초)."""
        ...


class SystemClock:
    """벽시계 기반 Clock."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """수동 진행 Clock (테스트/시뮬레이션용).

    Args:
        start: 시작 시각 (unix seconds)
    """

    def __init__(self, start: int = 1_700_000_000) -> None:
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        """시간을 seconds만큼 진행하고 새 시각 반환."""
        if seconds < 0:
            msg = f"Cannot move clock backwards: {seconds}"
            raise ValueError(msg)
        self._now += seconds
        return self._now

    def set(self, timestamp: int) -> None:
        """절대 시각 설정 (역행 불가)."""
        if timestamp < self._now:
            msg = f"Cannot move clock backwards: {timestamp} < {self._now}"
            raise ValueError(msg)
        self._now = timestamp
