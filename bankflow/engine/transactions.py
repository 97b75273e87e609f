"""
Transaction Engine

DESIGN DECISION: Every check runs before any write. A call either
applies completely or returns a Rejection and leaves the ledger exactly
as it was.

Check precedence (first failure wins):

DEPOSIT:
1. Invalid amount (non-numeric, non-finite, zero or negative)
2. Per-transaction cap
3. Daily deposit limit

WITHDRAW:
1. Invalid amount
2. Insufficient funds
3. Daily withdrawal limit
4. Minimum balance

The two orders are not symmetric. They decide which message the user
sees when several rules are broken at once, so they must not change.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from bankflow.models.ledger import (
    Ledger,
    Rejection,
    RejectionReason,
    Transaction,
    TransactionType,
    next_record_id,
)
from bankflow.queries.aggregates import today_deposits, today_withdrawals
from bankflow.utils.date_utils import resolve_now, to_utc
from bankflow.utils.money import ZERO, parse_amount, round2

TransactionResult = Union[Ledger, Rejection]


def _normalize_amount(raw: object) -> Union[Decimal, Rejection]:
    """Stage 1: parse, check positivity, round to cents."""
    amount = parse_amount(raw)
    if amount is None or amount <= 0:
        return _invalid_amount()
    amount = round2(amount)
    # 0.004 is positive but rounds away to nothing
    if amount <= ZERO:
        return _invalid_amount()
    return amount


def _invalid_amount() -> Rejection:
    return Rejection(
        reason=RejectionReason.INVALID_AMOUNT,
        message="Please enter a valid amount greater than 0",
    )


def _daily_limit_exceeded(kind: str, limit: Decimal, used: Decimal) -> Rejection:
    headroom = round2(limit - used)
    verb = "deposit" if kind == "deposit" else "withdraw"
    return Rejection(
        reason=RejectionReason.EXCEEDS_DAILY_LIMIT,
        message=(
            f"Daily {kind} limit exceeded. "
            f"You can {verb} up to ${headroom:.2f} more today."
        ),
        headroom=headroom,
    )


def _description(description: Optional[str], transaction_type: TransactionType) -> str:
    if description is None or not description.strip():
        return transaction_type.default_description
    return description.strip()


def _apply(
    ledger: Ledger,
    transaction_type: TransactionType,
    amount: Decimal,
    description: Optional[str],
    now: datetime,
) -> Ledger:
    """Write a validated transaction. Only called after every check passed."""
    if transaction_type is TransactionType.DEPOSIT:
        new_balance = round2(ledger.balance + amount)
    else:
        new_balance = round2(ledger.balance - amount)

    transaction = Transaction(
        id=next_record_id(ledger, now),
        type=transaction_type,
        amount=amount,
        description=_description(description, transaction_type),
        date=to_utc(now),
        balance_after=new_balance,
    )
    ledger.transactions.insert(0, transaction)
    ledger.balance = new_balance
    return ledger


def deposit(
    ledger: Ledger,
    amount: object,
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransactionResult:
    """
    Deposit money into the account.

    Args:
        ledger: The ledger to mutate on success
        amount: Raw user input (number or numeric string)
        description: Label; "Deposit" when omitted or blank
        now: Current time; its timezone defines "today"

    Returns:
        The same ledger, updated, or a Rejection
    """
    now = resolve_now(now)
    policy = ledger.policy

    normalized = _normalize_amount(amount)
    if isinstance(normalized, Rejection):
        return normalized

    if normalized > policy.max_deposit_per_transaction:
        return Rejection(
            reason=RejectionReason.EXCEEDS_PER_TRANSACTION_CAP,
            message=(
                f"Maximum deposit amount is ${policy.max_deposit_per_transaction:.2f} "
                "per transaction"
            ),
        )

    used = today_deposits(ledger, now)
    if round2(used + normalized) > policy.daily_deposit_limit:
        return _daily_limit_exceeded("deposit", policy.daily_deposit_limit, used)

    return _apply(ledger, TransactionType.DEPOSIT, normalized, description, now)


def withdraw(
    ledger: Ledger,
    amount: object,
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransactionResult:
    """
    Withdraw money from the account.

    Insufficient funds is checked before the daily limit because it is
    the more specific failure.

    Returns:
        The same ledger, updated, or a Rejection
    """
    now = resolve_now(now)
    policy = ledger.policy

    normalized = _normalize_amount(amount)
    if isinstance(normalized, Rejection):
        return normalized

    if normalized > ledger.balance:
        return Rejection(
            reason=RejectionReason.INSUFFICIENT_FUNDS,
            message="Insufficient funds for this withdrawal",
        )

    used = today_withdrawals(ledger, now)
    if round2(used + normalized) > policy.daily_withdrawal_limit:
        return _daily_limit_exceeded("withdrawal", policy.daily_withdrawal_limit, used)

    if round2(ledger.balance - normalized) < policy.min_balance:
        return Rejection(
            reason=RejectionReason.BELOW_MINIMUM_BALANCE,
            message=(
                f"Account must maintain a minimum balance of ${policy.min_balance:.2f}"
            ),
        )

    return _apply(ledger, TransactionType.WITHDRAW, normalized, description, now)
