"""Core module - access control, transactions, audit log, shared errors."""

from vstrc.core.access import CallContext, Capability
from vstrc.core.audit import (
    AuditEventType,
    AuditLog,
    InMemoryAuditLog,
    JsonlAuditLog,
    parse_audit_event,
)
from vstrc.core.clock import Clock, ManualClock, SystemClock
from vstrc.core.guard import NonReentrantGuard
from vstrc.core.transaction import Transaction, Transactional, TransactionManager

__all__ = [
    # Access
    "CallContext",
    "Capability",
    # Audit
    "AuditEventType",
    "AuditLog",
    "InMemoryAuditLog",
    "JsonlAuditLog",
    "parse_audit_event",
    # Clock
    "Clock",
    "ManualClock",
    "SystemClock",
    # Transactions
    "NonReentrantGuard",
    "Transaction",
    "TransactionManager",
    "Transactional",
]
