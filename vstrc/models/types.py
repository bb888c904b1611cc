"""공용 타입/상수 정의.

여러 레이어에서 공통으로 사용되는 상수, Enum, TypeAlias를 정의합니다.
engine/strategy/vault 모듈에서 순환 참조 없이 사용할 수 있습니다.

단위 규약:
    - 금액은 자산의 최소 단위 int (USDC 6 decimals → 1_000_000 = $1)
    - 비율/금리는 basis points int (10_000 = 100%)
    - 정밀 비율은 PRECISION(1e18) 스케일 int

Rules Applied:
    - #10 Python Standards: Modern typing (X | None, list[])
    - #01 Project Structure: Dependency flow (Models can be imported by all layers)
"""

from enum import StrEnum
from typing import Final, TypeAlias

BASIS_POINTS: Final = 10_000
SECONDS_PER_YEAR: Final = 365 * 24 * 60 * 60
PRECISION: Final = 10**18

SECONDS_PER_HOUR: Final = 60 * 60
SECONDS_PER_DAY: Final = 24 * SECONDS_PER_HOUR

# Default asset identifiers (token ledger / oracle keys)
STABLE_ASSET: Final = "USDC"
VOLATILE_ASSET: Final = "WBTC"
SHARE_ASSET: Final = "vSTRC"

STABLE_DECIMALS: Final = 6
VOLATILE_DECIMALS: Final = 8

AccountId: TypeAlias = str
AssetId: TypeAlias = str


class PegState(StrEnum):
    """시장가 vs 목표가 관계."""

    BELOW = "below"
    AT = "at"
    ABOVE = "above"


class EpochPhase(StrEnum):
    """에폭 tick 상태 머신.

    IDLE → COMPUTING → REBALANCING → SETTLED → (다음 epoch_duration 경과 후) IDLE
    """

    IDLE = "idle"
    COMPUTING = "computing"
    REBALANCING = "rebalancing"
    SETTLED = "settled"


class Rounding(StrEnum):
    """정수 나눗셈 반올림 방향."""

    DOWN = "down"
    UP = "up"
