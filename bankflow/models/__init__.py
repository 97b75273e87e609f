"""
Data Models Package

This package contains all Pydantic models used by BankFlow.
All state flowing through the system must conform to these schemas.
"""

from bankflow.models.ledger import (
    ContactMessage,
    Ledger,
    LoadStatus,
    Policy,
    Rejection,
    RejectionReason,
    Transaction,
    TransactionType,
    next_record_id,
)
from bankflow.models.stats import (
    LedgerStats,
    LimitUsage,
    MonthlyStats,
    TransactionFilter,
    TransactionSort,
    TransactionSummary,
)
from bankflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "ContactMessage",
    "Ledger",
    "LoadStatus",
    "Policy",
    "Rejection",
    "RejectionReason",
    "Transaction",
    "TransactionType",
    "next_record_id",
    # Statistics models
    "LedgerStats",
    "LimitUsage",
    "MonthlyStats",
    "TransactionFilter",
    "TransactionSort",
    "TransactionSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
