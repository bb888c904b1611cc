"""Context binding utilities for structured logging.

Vault/Strategy 컴포넌트가 동일한 operation 식별자로 로그를 남기도록
contextvars 기반 컨텍스트를 제공합니다. 중첩 트랜잭션(vault → strategy)
에서도 operation_id가 await 경계를 넘어 전파됩니다.

Rules Applied:
    - #15 Logging Standards: Context binding with logger.bind()
    - #10 Python Standards: contextvars for async safety
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from loguru import Logger

current_operation_id: ContextVar[str | None] = ContextVar("operation_id", default=None)
current_operation: ContextVar[str | None] = ContextVar("operation", default=None)


def generate_operation_id() -> str:
    """짧은 operation ID 생성 (op_ + 12 hex)."""
    return f"op_{uuid.uuid4().hex[:12]}"


def get_vault_logger(
    *,
    component: str,
    operation: str | None = None,
    **extra: str,
) -> Logger:
    """Get a logger with component/operation context bound.

    Args:
        component: 컴포넌트 이름 (e.g., "vault", "strategy")
        operation: 작업 이름 (e.g., "deposit", "rebalance_yield")
        **extra: Additional context key-value pairs

    Returns:
        Logger instance with context bound

    Example:
        >>> log = get_vault_logger(component="vault", operation="deposit")
        >>> log.info("Deposit committed")
    """
    ctx: dict[str, str] = {"component": component}

    op = operation or current_operation.get()
    if op:
        ctx["operation"] = op
    op_id = current_operation_id.get()
    if op_id:
        ctx["operation_id"] = op_id

    ctx.update(extra)
    return logger.bind(**ctx)


def get_current_context() -> dict[str, str | None]:
    """현재 operation 컨텍스트 반환 (디버깅용)."""
    return {
        "operation": current_operation.get(),
        "operation_id": current_operation_id.get(),
    }
