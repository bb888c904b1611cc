"""Share-issuing vault and its share ledger."""

from vstrc.vault.ledger import ShareLedger
from vstrc.vault.vault import DECIMALS_OFFSET, VIRTUAL_ASSETS, VIRTUAL_SHARES, Vault

__all__ = ["DECIMALS_OFFSET", "VIRTUAL_ASSETS", "VIRTUAL_SHARES", "ShareLedger", "Vault"]
