"""External venue ports (token, DEX, lending) and in-process simulations."""

from vstrc.venues.ports import DexPort, LendingPort, TokenPort
from vstrc.venues.simulated import SimulatedDex, SimulatedLendingPool, SimulatedTokenLedger

__all__ = [
    "DexPort",
    "LendingPort",
    "SimulatedDex",
    "SimulatedLendingPool",
    "SimulatedTokenLedger",
    "TokenPort",
]
