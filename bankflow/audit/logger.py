"""
Audit Logger

DESIGN DECISION: Every balance change, rejection and bulk replacement
is logged. This provides:
1. Traceability of the balance
2. Debugging capability when a snapshot goes bad
3. History the user can inspect

The audit logger:
- Is synchronous, like the engine it records
- Handles sink failures gracefully (a failing audit store never
  breaks a deposit)
- Supports correlation IDs to tie the events of one session together
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from bankflow.models.audit import AuditEvent, AuditEventBuilder
from bankflow.services.storage import AuditStorageInterface, StorageError


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog's stdlib output to stderr at the given level."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        correlation_id: Optional[UUID] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            correlation_id: Attached to every event built by the helpers.
        """
        self._storage = storage
        self._correlation_id = correlation_id or create_correlation_id()
        self._logger = structlog.get_logger("bankflow.audit")

    @property
    def correlation_id(self) -> UUID:
        return self._correlation_id

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def recent_events(self, limit: int = 20) -> list[AuditEvent]:
        """Newest events from the audit store (empty without one)."""
        if not self._storage:
            return []
        try:
            return self._storage.get_recent_events(limit)
        except StorageError as e:
            self._logger.error("audit_read_failed", error=str(e))
            return []

    def log_deposit(self, transaction_id: int, amount: str, balance: str) -> None:
        """Log an accepted deposit."""
        self.log(AuditEventBuilder.deposit_accepted(
            transaction_id=transaction_id,
            amount=amount,
            balance=balance,
            correlation_id=self._correlation_id,
        ))

    def log_withdrawal(self, transaction_id: int, amount: str, balance: str) -> None:
        """Log an accepted withdrawal."""
        self.log(AuditEventBuilder.withdrawal_accepted(
            transaction_id=transaction_id,
            amount=amount,
            balance=balance,
            correlation_id=self._correlation_id,
        ))

    def log_rejection(self, operation: str, reason: str, message: str) -> None:
        """Log a refused deposit or withdrawal."""
        self.log(AuditEventBuilder.transaction_rejected(
            operation=operation,
            reason=reason,
            message=message,
            correlation_id=self._correlation_id,
        ))

    def log_state_loaded(self, status: str, transaction_count: int) -> None:
        self.log(AuditEventBuilder.state_loaded(
            status=status,
            transaction_count=transaction_count,
            correlation_id=self._correlation_id,
        ))

    def log_state_corrupt(self, error_message: str) -> None:
        self.log(AuditEventBuilder.state_corrupt(
            error_message=error_message,
            correlation_id=self._correlation_id,
        ))

    def log_save_failed(self, error_message: str) -> None:
        self.log(AuditEventBuilder.save_failed(
            error_message=error_message,
            correlation_id=self._correlation_id,
        ))

    def log_import(self, transaction_count: int) -> None:
        self.log(AuditEventBuilder.import_accepted(
            transaction_count=transaction_count,
            correlation_id=self._correlation_id,
        ))

    def log_import_rejected(self, message: str) -> None:
        self.log(AuditEventBuilder.import_rejected(
            message=message,
            correlation_id=self._correlation_id,
        ))

    def log_export(self, export_format: str, transaction_count: int) -> None:
        self.log(AuditEventBuilder.data_exported(
            export_format=export_format,
            transaction_count=transaction_count,
            correlation_id=self._correlation_id,
        ))

    def log_reset(self) -> None:
        self.log(AuditEventBuilder.ledger_reset(correlation_id=self._correlation_id))

    def log_history_cleared(self) -> None:
        self.log(AuditEventBuilder.history_cleared(correlation_id=self._correlation_id))

    def log_message(self, message_id: int, subject: str) -> None:
        self.log(AuditEventBuilder.message_received(
            message_id=message_id,
            subject=subject,
            correlation_id=self._correlation_id,
        ))

    def log_message_rejected(self, message: str) -> None:
        self.log(AuditEventBuilder.message_rejected(
            message=message,
            correlation_id=self._correlation_id,
        ))

    def log_messages_cleared(self) -> None:
        self.log(AuditEventBuilder.messages_cleared(correlation_id=self._correlation_id))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    One per session; every event the session logs carries it.
    """
    return uuid4()
