"""
Audit Models for BankFlow

Every balance change, rejection and bulk replacement is logged.
This provides:
1. Traceability of how the balance got where it is
2. Debugging information when a snapshot goes bad
3. A history the user can inspect

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Balance changes
    DEPOSIT_ACCEPTED = "deposit_accepted"
    WITHDRAWAL_ACCEPTED = "withdrawal_accepted"
    TRANSACTION_REJECTED = "transaction_rejected"

    # Persistence
    STATE_LOADED = "state_loaded"
    STATE_SEEDED = "state_seeded"
    STATE_CORRUPT = "state_corrupt"
    SAVE_FAILED = "save_failed"

    # Bulk operations
    IMPORT_ACCEPTED = "import_accepted"
    IMPORT_REJECTED = "import_rejected"
    DATA_EXPORTED = "data_exported"
    LEDGER_RESET = "ledger_reset"
    HISTORY_CLEARED = "history_cleared"

    # Contact messages
    MESSAGE_RECEIVED = "message_received"
    MESSAGE_REJECTED = "message_rejected"
    MESSAGES_CLEARED = "messages_cleared"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What the event is about (e.g. 'transaction', 'ledger', 'message')
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None

    # Ties together the events of one session
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_row(self) -> list[str]:
        """
        Flatten to a row for tabular sinks.

        Columns: [event_id, timestamp, event_type, severity, entity_type,
        entity_id, correlation_id, description, details_json, error_message,
        is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id is not None else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.deposit_accepted(tx_id, "500.00", "1500.00", cid)
        event = AuditEventBuilder.state_corrupt("Expecting value", cid)
    """

    @staticmethod
    def deposit_accepted(
        transaction_id: int,
        amount: str,
        balance: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEPOSIT_ACCEPTED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Deposited ${amount}",
            details={"amount": amount, "balance_after": balance},
            is_user_action=True,
        )

    @staticmethod
    def withdrawal_accepted(
        transaction_id: int,
        amount: str,
        balance: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WITHDRAWAL_ACCEPTED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Withdrew ${amount}",
            details={"amount": amount, "balance_after": balance},
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(
        operation: str,
        reason: str,
        message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"{operation.capitalize()} rejected: {reason}",
            details={"operation": operation, "reason": reason, "message": message},
            is_user_action=True,
        )

    @staticmethod
    def state_loaded(
        status: str,
        transaction_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.STATE_SEEDED if status == "seeded"
            else AuditEventType.STATE_LOADED
        )
        return AuditEvent(
            event_type=event_type,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger {status} with {transaction_count} transactions",
            details={"status": status, "transaction_count": transaction_count},
        )

    @staticmethod
    def state_corrupt(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_CORRUPT,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Saved data could not be read; reset to demo data",
            error_message=error_message,
        )

    @staticmethod
    def save_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Error saving ledger snapshot",
            error_message=error_message,
        )

    @staticmethod
    def import_accepted(
        transaction_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_ACCEPTED,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Data imported with {transaction_count} transactions",
            details={"transaction_count": transaction_count},
            is_user_action=True,
        )

    @staticmethod
    def import_rejected(
        message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Import rejected: invalid file format",
            error_message=message,
            is_user_action=True,
        )

    @staticmethod
    def data_exported(
        export_format: str,
        transaction_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Exported {transaction_count} transactions as {export_format}",
            details={"format": export_format, "transaction_count": transaction_count},
            is_user_action=True,
        )

    @staticmethod
    def ledger_reset(correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_RESET,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="All data reset to defaults",
            is_user_action=True,
        )

    @staticmethod
    def history_cleared(correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HISTORY_CLEARED,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Transaction history cleared (demo data kept)",
            is_user_action=True,
        )

    @staticmethod
    def message_received(
        message_id: int,
        subject: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MESSAGE_RECEIVED,
            entity_type="message",
            entity_id=message_id,
            correlation_id=correlation_id,
            description=f"Contact message received: {subject}",
            details={"subject": subject},
            is_user_action=True,
        )

    @staticmethod
    def message_rejected(
        message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MESSAGE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="message",
            correlation_id=correlation_id,
            description="Contact message rejected",
            error_message=message,
            is_user_action=True,
        )

    @staticmethod
    def messages_cleared(correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MESSAGES_CLEARED,
            entity_type="message",
            correlation_id=correlation_id,
            description="Contact messages cleared",
            is_user_action=True,
        )
