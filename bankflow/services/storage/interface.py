"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep snapshots in JSON files today and somewhere else later
2. Use in-memory storage for testing
3. Keep the ledger logic decoupled from where bytes end up

The ledger is persisted as one opaque JSON blob under a fixed key; the
storage layer never interprets it.
"""

from abc import ABC, abstractmethod
from typing import Optional

from bankflow.models.audit import AuditEvent, AuditEventType


class LedgerStorageInterface(ABC):
    """
    Abstract interface for snapshot storage.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """
        Read the blob stored under a key.

        Returns:
            The stored text, or None if nothing is stored

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def write(self, key: str, blob: str) -> None:
        """
        Store a blob under a key, replacing any previous value.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if something was deleted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass

    @abstractmethod
    def get_events_by_type(self, event_type: AuditEventType) -> list[AuditEvent]:
        """
        Get all events of one type in chronological order.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageConnectionError(StorageError):
    """Could not reach the storage backend."""
    pass
