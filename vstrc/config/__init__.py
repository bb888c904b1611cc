"""Configuration: runtime settings (env) + protocol parameters (YAML)."""

from vstrc.config.config_loader import ProtocolConfig, load_config
from vstrc.config.settings import VaultSettings, clear_settings_cache, get_settings

__all__ = [
    "ProtocolConfig",
    "VaultSettings",
    "clear_settings_cache",
    "get_settings",
    "load_config",
]
