"""
Storage Services Package

Provides abstract interfaces and concrete implementations for snapshot
and audit storage. JSON files are the default backend; in-memory backends
serve tests and diskless runs.
"""

from bankflow.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    StorageConnectionError,
    StorageError,
)
from bankflow.services.storage.json_file import (
    JsonFileLedgerStorage,
    JsonLinesAuditStorage,
)
from bankflow.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "StorageConnectionError",
    "StorageError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "JsonFileLedgerStorage",
    "JsonLinesAuditStorage",
]
