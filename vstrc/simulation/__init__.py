"""Scenario simulation on in-process venues."""

from vstrc.simulation.runner import SimulationRunner
from vstrc.simulation.scenario import (
    DepositStep,
    EpochStep,
    FeedPrice,
    RedeemStep,
    Scenario,
    load_scenario,
)
from vstrc.simulation.world import ProtocolWorld, build_world

__all__ = [
    "DepositStep",
    "EpochStep",
    "FeedPrice",
    "ProtocolWorld",
    "RedeemStep",
    "Scenario",
    "SimulationRunner",
    "build_world",
    "load_scenario",
]
