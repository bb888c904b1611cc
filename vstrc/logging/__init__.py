"""Logging service module for the treasury vault.

This module provides:
- LoggingConfig loaded from LOG_* environment variables
- Context binding utilities for async environments

Rules Applied:
    - #15 Logging Standards: Loguru, dual sinks
"""

from vstrc.logging.config import LoggingConfig, get_logging_config
from vstrc.logging.context import (
    current_operation,
    current_operation_id,
    generate_operation_id,
    get_current_context,
    get_vault_logger,
)

__all__ = [
    "LoggingConfig",
    "current_operation",
    "current_operation_id",
    "generate_operation_id",
    "get_current_context",
    "get_logging_config",
    "get_vault_logger",
]
