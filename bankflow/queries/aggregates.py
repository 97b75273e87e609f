"""
Ledger Aggregates

DESIGN DECISION: Every figure shown to the user is computed here,
deterministically, from the transaction log and an explicit "now".
Nothing is cached across mutations, so statistics can never drift
from the log.

The local calendar is the timezone of `now`: daily limits reset at
local midnight and monthly statistics follow the local month.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Union

from bankflow.models.ledger import Ledger, Transaction, TransactionType
from bankflow.models.stats import (
    LedgerStats,
    LimitUsage,
    MonthlyStats,
    TransactionFilter,
    TransactionSort,
    TransactionSummary,
)
from bankflow.utils.date_utils import resolve_now, same_local_day, same_local_month
from bankflow.utils.money import ZERO, round2


def _total(transactions: Iterable[Transaction]) -> Decimal:
    """Sum amounts, rounding after every addition."""
    total = ZERO
    for transaction in transactions:
        total = round2(total + transaction.amount)
    return total


def _today_total(
    ledger: Ledger,
    transaction_type: TransactionType,
    now: Optional[datetime],
) -> Decimal:
    now = resolve_now(now)
    return _total(
        t for t in ledger.transactions
        if t.type is transaction_type and same_local_day(t.date, now)
    )


def today_deposits(ledger: Ledger, now: Optional[datetime] = None) -> Decimal:
    """Sum of deposits made on now's local calendar day."""
    return _today_total(ledger, TransactionType.DEPOSIT, now)


def today_withdrawals(ledger: Ledger, now: Optional[datetime] = None) -> Decimal:
    """Sum of withdrawals made on now's local calendar day."""
    return _today_total(ledger, TransactionType.WITHDRAW, now)


def monthly_stats(ledger: Ledger, now: Optional[datetime] = None) -> MonthlyStats:
    """
    Aggregate the current calendar month.

    Average and largest are 0 when the month has no transactions.
    """
    now = resolve_now(now)
    monthly = [t for t in ledger.transactions if same_local_month(t.date, now)]
    deposits = [t for t in monthly if t.type is TransactionType.DEPOSIT]
    withdrawals = [t for t in monthly if t.type is TransactionType.WITHDRAW]

    total_deposits = _total(deposits)
    total_withdrawals = _total(withdrawals)

    if monthly:
        average = round2(_total(monthly) / len(monthly))
        largest = max(t.amount for t in monthly)
    else:
        average = ZERO
        largest = ZERO

    return MonthlyStats(
        total_deposits=total_deposits,
        total_withdrawals=total_withdrawals,
        net=round2(total_deposits - total_withdrawals),
        average_transaction=average,
        largest_transaction=largest,
        deposit_count=len(deposits),
        withdrawal_count=len(withdrawals),
    )


def transaction_summary(ledger: Ledger) -> TransactionSummary:
    """All-time deposit and withdrawal totals."""
    deposits = _total(t for t in ledger.transactions if t.type is TransactionType.DEPOSIT)
    withdrawals = _total(t for t in ledger.transactions if t.type is TransactionType.WITHDRAW)
    return TransactionSummary(
        total_deposits=deposits,
        total_withdrawals=withdrawals,
        net_change=round2(deposits - withdrawals),
    )


def _percent(used: Decimal, limit: Decimal) -> float:
    return min(float(used / limit * 100), 100.0)


def limit_usage(ledger: Ledger, now: Optional[datetime] = None) -> LimitUsage:
    """Today's usage of both daily limits."""
    now = resolve_now(now)
    policy = ledger.policy
    deposited = today_deposits(ledger, now)
    withdrawn = today_withdrawals(ledger, now)
    return LimitUsage(
        today_deposits=deposited,
        today_withdrawals=withdrawn,
        deposit_headroom=max(round2(policy.daily_deposit_limit - deposited), ZERO),
        withdrawal_headroom=max(round2(policy.daily_withdrawal_limit - withdrawn), ZERO),
        deposit_percent=_percent(deposited, policy.daily_deposit_limit),
        withdrawal_percent=_percent(withdrawn, policy.daily_withdrawal_limit),
    )


def max_withdrawal(ledger: Ledger) -> Decimal:
    """Largest amount the minimum-balance rule would allow right now."""
    return max(round2(ledger.balance - ledger.policy.min_balance), ZERO)


def filter_transactions(
    ledger: Ledger,
    filter_type: Union[TransactionFilter, str] = TransactionFilter.ALL,
    sort_by: Union[TransactionSort, str] = TransactionSort.NEWEST,
) -> list[Transaction]:
    """
    Transactions for display.

    Sorting is stable, so ties keep their log order.
    """
    filter_type = TransactionFilter(filter_type)
    sort_by = TransactionSort(sort_by)

    transactions = list(ledger.transactions)
    if filter_type is not TransactionFilter.ALL:
        wanted = TransactionType(filter_type.value)
        transactions = [t for t in transactions if t.type is wanted]

    if sort_by is TransactionSort.OLDEST:
        transactions.sort(key=lambda t: t.date)
    elif sort_by is TransactionSort.AMOUNT_HIGH:
        transactions.sort(key=lambda t: t.amount, reverse=True)
    elif sort_by is TransactionSort.AMOUNT_LOW:
        transactions.sort(key=lambda t: t.amount)
    else:
        transactions.sort(key=lambda t: t.date, reverse=True)

    return transactions


def build_stats(ledger: Ledger, now: Optional[datetime] = None) -> LedgerStats:
    """The derived-statistics block written next to a snapshot."""
    return LedgerStats(
        total_transactions=len(ledger.transactions),
        monthly_stats=monthly_stats(ledger, now),
        last_backup=ledger.last_backup,
    )
