"""Price oracle port, validating reader and simulated feeds."""

from vstrc.oracle.feeds import SimulatedPriceOracle
from vstrc.oracle.ports import PriceOracle
from vstrc.oracle.reader import OracleReader

__all__ = ["OracleReader", "PriceOracle", "SimulatedPriceOracle"]
