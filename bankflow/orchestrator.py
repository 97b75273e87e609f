"""
Main Orchestrator for BankFlow

This module ties the pure ledger functions to storage and auditing and
exposes the call surface the UI works against:

    deposit / withdraw / get_balance / get_transactions / monthly_stats /
    reset_to_demo / clear_history / clear_messages / import_data /
    export_csv / export_backup / submit_message

DESIGN DECISION: The session enforces the boundaries:
- Nothing is persisted unless the engine accepted the change
- A failing store never surfaces as an error to the user
- Every step is audited

BankingSession owns exactly one Ledger. All public methods hold one
re-entrant lock, so the session is safe to share between the threads
of a UI server even though the engine itself is not.
"""

import threading
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, Union

import structlog

from bankflow.audit import AuditLogger
from bankflow.config import get_settings
from bankflow.engine import clear_messages, deposit, submit_message, withdraw
from bankflow.export import export_csv, export_filename
from bankflow.models.audit import AuditEvent
from bankflow.models.ledger import (
    ContactMessage,
    Ledger,
    LoadStatus,
    Policy,
    Rejection,
    Transaction,
)
from bankflow.models.stats import (
    LedgerStats,
    LimitUsage,
    MonthlyStats,
    TransactionFilter,
    TransactionSort,
    TransactionSummary,
)
from bankflow.queries import aggregates
from bankflow.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    JsonFileLedgerStorage,
    JsonLinesAuditStorage,
    LedgerStorageInterface,
    StorageError,
)
from bankflow.store import ledger_store
from bankflow.utils.date_utils import resolve_now, to_utc

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def default_clock() -> datetime:
    """Wall clock in the configured timezone (system zone if unset)."""
    tz = get_settings().app.tzinfo
    return datetime.now(tz) if tz else datetime.now().astimezone()


class BankingSession:
    """
    The single-account session the UI talks to.

    Flow for every mutation:
    1. Validate + apply through the engine (pure, all-or-nothing)
    2. On success, persist the snapshot
    3. Audit the outcome
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = default_clock,
        storage_key: Optional[str] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._clock = clock
        self._key = storage_key or get_settings().storage.storage_key
        self._lock = threading.RLock()
        self._ledger = self._open()

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _now(self) -> datetime:
        return resolve_now(self._clock())

    def _open(self) -> Ledger:
        """Load the stored snapshot, seeding and saving demo data if needed."""
        now = self._now()
        try:
            raw = self._storage.read(self._key)
        except StorageError as e:
            logger.warning("ledger_read_failed", error=str(e))
            self._audit.log_state_corrupt(str(e))
            ledger = ledger_store.seed_demo(now)
            self._persist(ledger)
            return ledger

        ledger, status = ledger_store.load_snapshot(raw, now)
        if status is LoadStatus.CORRUPT:
            self._audit.log_state_corrupt("Saved data could not be parsed")
        else:
            self._audit.log_state_loaded(status.value, len(ledger.transactions))
        if status is not LoadStatus.LOADED:
            self._persist(ledger)
        return ledger

    def _persist(self, ledger: Optional[Ledger] = None) -> bool:
        """Save the snapshot. Failures are logged and audited, never raised."""
        if ledger is None:
            ledger = self._ledger
        try:
            self._storage.write(self._key, ledger_store.dumps(ledger, self._now()))
        except StorageError as e:
            logger.error("ledger_save_failed", error=str(e))
            self._audit.log_save_failed(str(e))
            return False
        return True

    def save(self) -> bool:
        with self._lock:
            return self._persist()

    # =========================================================================
    # BALANCE OPERATIONS
    # =========================================================================

    def deposit(
        self,
        amount: object,
        description: Optional[str] = None,
    ) -> Union[Ledger, Rejection]:
        """Deposit; returns the updated ledger or the rejection."""
        with self._lock:
            result = deposit(self._ledger, amount, description, now=self._now())
            if isinstance(result, Rejection):
                self._audit.log_rejection("deposit", result.reason.value, result.message)
                return result
            latest = result.transactions[0]
            self._persist()
            self._audit.log_deposit(latest.id, f"{latest.amount:.2f}", f"{result.balance:.2f}")
            return result

    def withdraw(
        self,
        amount: object,
        description: Optional[str] = None,
    ) -> Union[Ledger, Rejection]:
        """Withdraw; returns the updated ledger or the rejection."""
        with self._lock:
            result = withdraw(self._ledger, amount, description, now=self._now())
            if isinstance(result, Rejection):
                self._audit.log_rejection("withdraw", result.reason.value, result.message)
                return result
            latest = result.transactions[0]
            self._persist()
            self._audit.log_withdrawal(latest.id, f"{latest.amount:.2f}", f"{result.balance:.2f}")
            return result

    # =========================================================================
    # READ ACCESSORS
    # =========================================================================

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def policy(self) -> Policy:
        return self._ledger.policy

    def get_balance(self) -> Decimal:
        with self._lock:
            return self._ledger.balance

    def get_transactions(
        self,
        filter_type: Union[TransactionFilter, str] = TransactionFilter.ALL,
        sort_by: Union[TransactionSort, str] = TransactionSort.NEWEST,
    ) -> list[Transaction]:
        with self._lock:
            return aggregates.filter_transactions(self._ledger, filter_type, sort_by)

    def get_messages(self) -> list[ContactMessage]:
        with self._lock:
            return list(self._ledger.contact_messages)

    def monthly_stats(self) -> MonthlyStats:
        with self._lock:
            return aggregates.monthly_stats(self._ledger, self._now())

    def transaction_summary(self) -> TransactionSummary:
        with self._lock:
            return aggregates.transaction_summary(self._ledger)

    def limit_usage(self) -> LimitUsage:
        with self._lock:
            return aggregates.limit_usage(self._ledger, self._now())

    def max_withdrawal(self) -> Decimal:
        with self._lock:
            return aggregates.max_withdrawal(self._ledger)

    def stats(self) -> LedgerStats:
        with self._lock:
            return aggregates.build_stats(self._ledger, self._now())

    def recent_activity(self, limit: int = 20) -> list[AuditEvent]:
        """Newest audit events, when an audit store is configured."""
        return self._audit.recent_events(limit)

    # =========================================================================
    # BULK OPERATIONS
    # =========================================================================

    def reset_to_demo(self) -> Ledger:
        """Drop all stored data and start again from the demo ledger."""
        with self._lock:
            try:
                self._storage.delete(self._key)
            except StorageError as e:
                logger.warning("ledger_delete_failed", error=str(e))
            self._ledger = ledger_store.seed_demo(self._now())
            self._persist()
            self._audit.log_reset()
            return self._ledger

    def clear_history(self) -> Ledger:
        with self._lock:
            ledger_store.clear_history(self._ledger, self._now())
            self._persist()
            self._audit.log_history_cleared()
            return self._ledger

    def import_data(self, raw: Union[str, bytes, dict]) -> Union[Ledger, Rejection]:
        """Replace everything with an imported snapshot, or reject it."""
        with self._lock:
            result = ledger_store.replace(self._ledger, raw)
            if isinstance(result, Rejection):
                self._audit.log_import_rejected(result.message)
                return result
            self._ledger = result
            self._persist()
            self._audit.log_import(len(result.transactions))
            return result

    def export_csv(self) -> tuple[str, str]:
        """
        Export the transaction log.

        Returns:
            (filename, csv_text)
        """
        with self._lock:
            now = self._now()
            text = export_csv(self._ledger.transactions, tz=now.tzinfo)
            self._ledger.last_backup = to_utc(now)
            self._persist()
            self._audit.log_export("csv", len(self._ledger.transactions))
            return export_filename(now), text

    def export_backup(self) -> tuple[str, str]:
        """
        Export the full snapshot as JSON, importable with import_data.

        Returns:
            (filename, json_text)
        """
        with self._lock:
            now = self._now()
            self._ledger.last_backup = to_utc(now)
            text = ledger_store.dumps(self._ledger, now, indent=2)
            self._persist()
            self._audit.log_export("json", len(self._ledger.transactions))
            filename = export_filename(now).replace(".csv", ".json")
            return filename, text

    # =========================================================================
    # CONTACT MESSAGES
    # =========================================================================

    def submit_message(
        self,
        name: str,
        email: str,
        subject: str,
        message: str,
    ) -> Union[ContactMessage, Rejection]:
        with self._lock:
            result = submit_message(
                self._ledger, name, email, subject, message, now=self._now()
            )
            if isinstance(result, Rejection):
                self._audit.log_message_rejected(result.message)
                return result
            self._persist()
            self._audit.log_message(result.id, result.subject)
            return result

    def clear_messages(self) -> Ledger:
        with self._lock:
            clear_messages(self._ledger)
            self._persist()
            self._audit.log_messages_cleared()
            return self._ledger


def create_app_components(
    use_storage: bool = True,
    audit_logger: Optional[AuditLogger] = None,
    clock: Clock = default_clock,
) -> tuple[BankingSession, LedgerStorageInterface]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the configured persistent backend.
                    Set to False for an in-memory session.
        audit_logger: Overrides the audit logger built from settings.
                    By default events go to a JSON-lines file next to
                    the snapshot, or to memory when there is no disk.

    Returns:
        (session, storage)
    """
    settings = get_settings().storage
    storage: LedgerStorageInterface
    audit_storage: Optional[AuditStorageInterface] = None

    if use_storage and settings.backend == "json":
        try:
            file_storage = JsonFileLedgerStorage(settings.data_path)
            file_storage.ensure_directory()
            storage = file_storage
            if settings.audit_enabled:
                audit_storage = JsonLinesAuditStorage(settings.data_path, settings.audit_file)
        except StorageError as e:
            # Storage not usable - continue in memory
            logger.warning("storage_unavailable", error=str(e), fallback="memory")
            storage = InMemoryLedgerStorage()
    else:
        storage = InMemoryLedgerStorage()

    if audit_storage is None and settings.audit_enabled:
        audit_storage = InMemoryAuditStorage()

    session = BankingSession(
        storage=storage,
        audit_logger=audit_logger or AuditLogger(storage=audit_storage),
        clock=clock,
        storage_key=settings.storage_key,
    )
    return session, storage
