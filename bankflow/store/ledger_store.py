"""
Ledger Store

Owns the conversion between the persisted snapshot (one JSON blob) and
the Ledger aggregate, plus the deterministic demo data used on first run
and on reset.

DESIGN DECISION: Loading never raises. A missing snapshot seeds demo
data; an unreadable one is reported as corrupt and also seeds demo data.
Partially filled snapshots fall back to defaults field by field rather
than all-or-nothing: a transaction missing its balanceAfter gets one
replayed from the log, and a record that cannot be parsed is logged and
skipped while everything else is kept. Imports are strict instead.

The store does not enforce business rules; that is the engine's job.
"""

import json
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional, Union

import structlog
from pydantic import ValidationError

from bankflow.models.ledger import (
    ContactMessage,
    Ledger,
    LoadStatus,
    Policy,
    Rejection,
    RejectionReason,
    Transaction,
    TransactionType,
)
from bankflow.queries.aggregates import build_stats
from bankflow.utils.date_utils import epoch_millis, isoformat_utc, resolve_now, to_utc
from bankflow.utils.money import ZERO, parse_amount, round2

logger = structlog.get_logger(__name__)

RawSnapshot = Union[str, bytes, dict, None]

DEMO_BALANCE = Decimal("1250.75")


class CorruptStateError(Exception):
    """Persisted snapshot could not be parsed."""
    pass


# =============================================================================
# DEMO DATA
# =============================================================================

def _demo_transactions(now: datetime) -> list[Transaction]:
    """The three seeded transactions, newest first."""
    # (days ago, type, amount, description, balance after)
    rows = [
        (1, TransactionType.WITHDRAW, "249.25", "Grocery Shopping", "1250.75"),
        (2, TransactionType.DEPOSIT, "500", "Paycheck", "1500"),
        (3, TransactionType.DEPOSIT, "1000", "Initial Deposit", "1000"),
    ]
    transactions = []
    for days_ago, tx_type, amount, description, balance_after in rows:
        when = to_utc(now - timedelta(days=days_ago))
        transactions.append(Transaction(
            id=epoch_millis(when),
            type=tx_type,
            amount=Decimal(amount),
            description=description,
            date=when,
            balance_after=Decimal(balance_after),
        ))
    return transactions


def seed_demo(now: Optional[datetime] = None) -> Ledger:
    """
    Create the documented starting ledger.

    Balance 1250.75, deposits of 1000 and 500 and a withdrawal of 249.25
    timestamped 3/2/1 days before now, and one contact message.
    """
    now = resolve_now(now)
    message_date = to_utc(now - timedelta(days=4))
    return Ledger(
        balance=DEMO_BALANCE,
        transactions=_demo_transactions(now),
        contact_messages=[
            ContactMessage(
                id=epoch_millis(message_date),
                name="John Doe",
                email="john@example.com",
                subject="General Inquiry",
                message="I have a question about my account.",
                date=message_date,
            ),
        ],
        policy=Policy.from_settings(),
    )


# =============================================================================
# PARSING
# =============================================================================

def _decode(raw: Union[str, bytes, dict]) -> dict:
    """Decode a raw snapshot to a dict or raise CorruptStateError."""
    if isinstance(raw, dict):
        return raw
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CorruptStateError(f"Snapshot is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise CorruptStateError("Snapshot must be a JSON object")
    return data


def _record_list(data: dict, key: str) -> list:
    items = data.get(key)
    if items is None:
        return []
    if not isinstance(items, list):
        raise CorruptStateError(f"'{key}' must be a list")
    return items


def _parse_records(items: list, key: str, model: type, strict: bool) -> list:
    """
    Validate each record on its own.

    In strict mode one bad record fails the whole list. Otherwise the bad
    record is logged and skipped and the rest are kept.
    """
    records = []
    for index, item in enumerate(items):
        try:
            records.append(model.model_validate(item))
        except ValidationError as e:
            if strict:
                raise CorruptStateError(f"Invalid entry {index} in '{key}': {e}") from e
            logger.warning("ledger_record_skipped", key=key, index=index, error=str(e))
    return records


def _fill_running_balances(items: list, balance: Decimal) -> list:
    """
    Copies of raw transaction records with missing balanceAfter replayed.

    The log is newest first: the newest record closes at the snapshot
    balance and each older one at the balance before the newer records.
    A recorded balance resets the replay.
    """
    running = balance
    filled = []
    for item in items:
        if not isinstance(item, dict):
            filled.append(item)
            continue
        item = dict(item)
        recorded = next(
            (item[k] for k in ("balanceAfter", "balance_after", "balance") if item.get(k) is not None),
            None,
        )
        if recorded is None:
            item["balanceAfter"] = running
        else:
            parsed = parse_amount(recorded)
            if parsed is not None:
                running = round2(parsed)

        amount = parse_amount(item.get("amount"))
        if amount is not None:
            if item.get("type") == TransactionType.DEPOSIT.value:
                running = round2(running - amount)
            elif item.get("type") == TransactionType.WITHDRAW.value:
                running = round2(running + amount)
        filled.append(item)
    return filled


def _parse_balance(value: Any) -> Decimal:
    if value is None:
        return ZERO
    parsed = parse_amount(value)
    if parsed is None:
        raise CorruptStateError(f"'balance' must be a number, got {value!r}")
    return round2(parsed)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, str) and value:
        try:
            return to_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def _parse_ledger(data: dict, base_policy: Policy, strict: bool = False) -> Ledger:
    """
    Build a Ledger from a decoded snapshot, field by field.

    Raises CorruptStateError for wrong container types and, in strict
    mode, for any record that does not parse.
    """
    balance = _parse_balance(data.get("balance"))
    raw_transactions = _record_list(data, "transactions")
    raw_messages = _record_list(data, "contactMessages")

    try:
        transactions = _parse_records(
            _fill_running_balances(raw_transactions, balance),
            "transactions",
            Transaction,
            strict,
        )
        messages = _parse_records(raw_messages, "contactMessages", ContactMessage, strict)

        settings = data.get("settings")
        policy = base_policy.merged_with(settings) if isinstance(settings, dict) else base_policy

        # Stats are recomputed, only the backup time is carried over
        last_backup = _parse_datetime(data.get("lastBackup"))
        stats = data.get("stats")
        if last_backup is None and isinstance(stats, dict):
            last_backup = _parse_datetime(stats.get("lastBackup"))

        return Ledger(
            balance=balance,
            transactions=transactions,
            contact_messages=messages,
            policy=policy,
            last_backup=last_backup,
        )
    except (ArithmeticError, ValidationError) as e:
        raise CorruptStateError(f"Snapshot could not be assembled: {e}") from e


def load_snapshot(
    raw: RawSnapshot,
    now: Optional[datetime] = None,
) -> tuple[Ledger, LoadStatus]:
    """
    Deserialize a persisted snapshot.

    Returns the ledger and how it was obtained. Never raises.
    """
    if raw is None or (isinstance(raw, (str, bytes)) and not raw.strip()):
        logger.info("ledger_state_missing", action="seed_demo")
        return seed_demo(now), LoadStatus.SEEDED

    try:
        ledger = _parse_ledger(_decode(raw), Policy.from_settings())
    except CorruptStateError as e:
        logger.warning("ledger_state_corrupt", error=str(e), action="seed_demo")
        return seed_demo(now), LoadStatus.CORRUPT

    logger.info(
        "ledger_state_loaded",
        transaction_count=len(ledger.transactions),
        balance=str(ledger.balance),
    )
    return ledger, LoadStatus.LOADED


def load(raw: RawSnapshot, now: Optional[datetime] = None) -> Ledger:
    """Deserialize a persisted snapshot, falling back to demo data."""
    ledger, _ = load_snapshot(raw, now)
    return ledger


# =============================================================================
# SERIALIZATION
# =============================================================================

def _transaction_to_snapshot(transaction: Transaction) -> dict:
    return {
        "id": transaction.id,
        "type": transaction.type.value,
        "amount": float(transaction.amount),
        "description": transaction.description,
        "date": isoformat_utc(transaction.date),
        "balanceAfter": float(transaction.balance_after),
    }


def _message_to_snapshot(message: ContactMessage) -> dict:
    return {
        "id": message.id,
        "name": message.name,
        "email": message.email,
        "subject": message.subject,
        "message": message.message,
        "date": isoformat_utc(message.date),
    }


def serialize(ledger: Ledger, now: Optional[datetime] = None) -> dict:
    """
    Produce the JSON-ready snapshot.

    Amounts are JSON numbers and dates ISO-8601 UTC strings, so
    load(serialize(ledger)) reproduces every source field exactly.
    """
    return {
        "balance": float(ledger.balance),
        "transactions": [_transaction_to_snapshot(t) for t in ledger.transactions],
        "contactMessages": [_message_to_snapshot(m) for m in ledger.contact_messages],
        "settings": ledger.policy.to_snapshot(),
        "stats": build_stats(ledger, now).to_snapshot(),
        "lastBackup": isoformat_utc(ledger.last_backup) if ledger.last_backup else None,
    }


def dumps(ledger: Ledger, now: Optional[datetime] = None, indent: Optional[int] = None) -> str:
    """Serialize to JSON text."""
    return json.dumps(serialize(ledger, now), indent=indent)


# =============================================================================
# BULK REPLACEMENT
# =============================================================================

def _invalid_import(detail: str) -> Rejection:
    logger.info("ledger_import_rejected", error=detail)
    return Rejection(
        reason=RejectionReason.INVALID_IMPORT_FORMAT,
        message="Error importing data: Invalid file format",
    )


def replace(
    ledger: Ledger,
    imported_raw: Union[str, bytes, dict],
) -> Union[Ledger, Rejection]:
    """
    Build the ledger that wholesale replaces `ledger` with imported data.

    Requires a numeric balance and a list of transactions. Imported
    settings are merged over the current policy. `ledger` itself is never
    mutated; on rejection the caller keeps using it unchanged.
    """
    try:
        data = _decode(imported_raw)
    except CorruptStateError as e:
        return _invalid_import(str(e))

    balance = data.get("balance")
    if isinstance(balance, bool) or not isinstance(balance, (int, float)):
        return _invalid_import("'balance' must be a number")
    if not isinstance(data.get("transactions"), list):
        return _invalid_import("'transactions' must be a list")

    try:
        replacement = _parse_ledger(data, ledger.policy, strict=True)
    except CorruptStateError as e:
        return _invalid_import(str(e))

    # Unlike the stored snapshot, an import may not carry its own backup time
    replacement.last_backup = ledger.last_backup
    return replacement


def clear_history(ledger: Ledger, now: Optional[datetime] = None) -> Ledger:
    """
    Reset the transaction log to the seeded demo transactions.

    Balance goes back to the seed baseline; messages and policy stay.
    """
    ledger.transactions = _demo_transactions(resolve_now(now))
    ledger.balance = DEMO_BALANCE
    return ledger
