"""
Derived Statistics Models

These are pure functions of the transaction log and "now".
They carry no independent state and are recomputed on every request;
any copy found in a persisted snapshot is ignored.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from bankflow.utils.date_utils import isoformat_utc
from bankflow.utils.money import ZERO


class TransactionFilter(str, Enum):
    """Which transactions to show."""
    ALL = "all"
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"


class TransactionSort(str, Enum):
    """Display ordering for the transaction list."""
    NEWEST = "newest"
    OLDEST = "oldest"
    AMOUNT_HIGH = "amount-high"
    AMOUNT_LOW = "amount-low"


class MonthlyStats(BaseModel):
    """Current calendar month aggregates."""
    model_config = ConfigDict(frozen=True)

    total_deposits: Decimal = ZERO
    total_withdrawals: Decimal = ZERO
    net: Decimal = Field(default=ZERO, description="Deposits minus withdrawals")
    average_transaction: Decimal = ZERO
    largest_transaction: Decimal = ZERO
    deposit_count: int = Field(default=0, ge=0)
    withdrawal_count: int = Field(default=0, ge=0)

    @property
    def transaction_count(self) -> int:
        return self.deposit_count + self.withdrawal_count

    def to_snapshot(self) -> dict:
        return {
            "totalAmount": float(self.net),
            "depositCount": self.deposit_count,
            "withdrawalCount": self.withdrawal_count,
            "averageTransaction": float(self.average_transaction),
            "largestTransaction": float(self.largest_transaction),
            "totalDeposits": float(self.total_deposits),
            "totalWithdrawals": float(self.total_withdrawals),
        }


class TransactionSummary(BaseModel):
    """All-time totals across the whole log."""
    model_config = ConfigDict(frozen=True)

    total_deposits: Decimal = ZERO
    total_withdrawals: Decimal = ZERO
    net_change: Decimal = ZERO


class LimitUsage(BaseModel):
    """How much of today's limits has been used."""
    model_config = ConfigDict(frozen=True)

    today_deposits: Decimal
    today_withdrawals: Decimal
    deposit_headroom: Decimal
    withdrawal_headroom: Decimal
    deposit_percent: float = Field(ge=0.0, le=100.0)
    withdrawal_percent: float = Field(ge=0.0, le=100.0)


class LedgerStats(BaseModel):
    """The derived-statistics block stored alongside a snapshot."""
    model_config = ConfigDict(frozen=True)

    total_transactions: int = Field(ge=0)
    monthly_stats: MonthlyStats
    last_backup: Optional[datetime] = None

    def to_snapshot(self) -> dict:
        return {
            "lastBackup": isoformat_utc(self.last_backup) if self.last_backup else None,
            "totalTransactions": self.total_transactions,
            "monthlyStats": self.monthly_stats.to_snapshot(),
        }
