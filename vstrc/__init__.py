"""vSTRC Treasury Vault - variable-rate yield vault backed by a WBTC/cash reserve."""

__version__ = "0.1.0"
