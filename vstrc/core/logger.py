"""Loguru logging configuration.

This module provides a centralized logging setup. All logging in the
application should use the configured loguru logger.

Features:
    - Dual sinks: Console (human-readable) + File (JSON serialized or text)
    - File rotation/retention/compression via loguru built-ins
    - Structured logging with context binding (component/operation)

Rules Applied:
    - #15 Logging Standards: Loguru, dual sinks
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from vstrc.logging.config import LoggingConfig, get_logging_config

# Remove default handler to prevent duplicate logs
logger.remove()


# =============================================================================
# Console Format Templates
# =============================================================================

CONSOLE_FORMAT_DEFAULT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


# =============================================================================
# Setup Functions
# =============================================================================


def setup_logger_from_config(config: LoggingConfig | None = None) -> None:
    """Initialize logger from Pydantic config model.

    Args:
        config: LoggingConfig instance (loads from env if None)

    Example:
        >>> from vstrc.core.logger import setup_logger_from_config
        >>> setup_logger_from_config()  # Loads from LOG_* env vars
    """
    if config is None:
        config = get_logging_config()

    _setup_logger_internal(config)


def setup_logger(
    log_dir: Path | str = Path("logs"),
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    *,
    json_logs: bool = True,
) -> None:
    """Initialize the logger with minimal configuration.

    Args:
        log_dir: Directory for log files (default: "logs")
        console_level: Console output level (default: "INFO")
        file_level: File output level (default: "DEBUG")
        json_logs: Serialize file records as JSON

    Example:
        >>> from vstrc.core.logger import setup_logger, logger
        >>> setup_logger(log_dir="logs", console_level="DEBUG")
        >>> logger.info("Vault started")
    """
    config = LoggingConfig(
        log_dir=Path(log_dir),
        console_level=console_level,  # type: ignore[arg-type]
        file_level=file_level,  # type: ignore[arg-type]
        json_logs=json_logs,
    )
    _setup_logger_internal(config)


def _setup_logger_internal(config: LoggingConfig) -> None:
    """Internal logger setup using config object.

    Args:
        config: LoggingConfig instance with all settings
    """
    logger.remove()

    log_path = Path(config.log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # 1. Console Handler (Human-readable)
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT_DEFAULT,
        level=config.console_level,
        colorize=True,
        backtrace=config.backtrace,
        diagnose=config.diagnose,
    )

    # 2. File Handler
    if config.json_logs:
        _setup_json_file_sink(log_path, config)
    else:
        _setup_text_file_sink(log_path, config)

    logger.info(
        "Logger initialized",
        log_dir=str(log_path),
        console_level=config.console_level,
        file_level=config.file_level,
        json_logs=config.json_logs,
    )


def _setup_json_file_sink(log_path: Path, config: LoggingConfig) -> None:
    """Set up JSON serialized file sink with rotation.

    Args:
        log_path: Path to log directory
        config: Logging configuration
    """
    logger.add(
        log_path / "vault_{time:YYYY-MM-DD}.json",
        format="{message}",
        level=config.file_level,
        serialize=True,
        rotation=config.rotation,
        retention=config.retention,
        compression=config.compression,
        enqueue=True,
        backtrace=config.backtrace,
        diagnose=False,
    )


def _setup_text_file_sink(log_path: Path, config: LoggingConfig) -> None:
    """Set up text file sink with loguru's built-in rotation.

    Args:
        log_path: Path to log directory
        config: Logging configuration
    """
    logger.add(
        log_path / "vault_{time:YYYY-MM-DD}.log",
        format=CONSOLE_FORMAT_DEFAULT,
        level=config.file_level,
        rotation=config.rotation,
        retention=config.retention,
        compression=config.compression,
        enqueue=True,
        backtrace=config.backtrace,
        diagnose=False,
    )


__all__ = [
    "logger",
    "setup_logger",
    "setup_logger_from_config",
]
