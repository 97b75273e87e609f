"""
Core Data Models for BankFlow

These models define the schemas for the ledger state and the values the
engine hands back to callers. They are designed to:
1. Keep currency as Decimal, rounded to cents on the way in
2. Accept the camelCase keys of the persisted snapshot
3. Make transactions and messages immutable once created

DESIGN DECISION: Rejections are plain models, not exceptions.
The UI renders them like any other result.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

import structlog
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from bankflow.config import get_settings
from bankflow.utils.date_utils import epoch_millis, to_utc
from bankflow.utils.money import ZERO, parse_amount, round2

logger = structlog.get_logger(__name__)


def _money(value: Any) -> Any:
    """Before-validator: coerce numeric input to a cent-rounded Decimal."""
    parsed = parse_amount(value)
    if parsed is None:
        # Leave it for pydantic to report
        return value
    return round2(parsed)


def _with_default_id(data: dict) -> dict:
    """Copy of a snapshot record with a missing id derived from its date."""
    data = dict(data)
    if data.get("id") is not None:
        return data
    value = data.get("date")
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return data
    if isinstance(value, datetime):
        data["id"] = epoch_millis(value)
    return data


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a balance-changing transaction."""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"

    @property
    def default_description(self) -> str:
        return "Deposit" if self is TransactionType.DEPOSIT else "Withdrawal"


class RejectionReason(str, Enum):
    """
    Why an operation was refused.

    Every reason is recoverable by re-prompting the user.
    """
    INVALID_AMOUNT = "invalid_amount"
    EXCEEDS_PER_TRANSACTION_CAP = "exceeds_per_transaction_cap"
    EXCEEDS_DAILY_LIMIT = "exceeds_daily_limit"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    BELOW_MINIMUM_BALANCE = "below_minimum_balance"
    INVALID_IMPORT_FORMAT = "invalid_import_format"
    INVALID_MESSAGE = "invalid_message"


class LoadStatus(str, Enum):
    """How a ledger came out of the store."""
    LOADED = "loaded"      # Parsed from a snapshot
    SEEDED = "seeded"      # No snapshot, demo data created
    CORRUPT = "corrupt"    # Snapshot unreadable, demo data created


# =============================================================================
# POLICY
# =============================================================================

class Policy(BaseModel):
    """
    Limits governing deposits and withdrawals.

    Serialized under "settings" in the snapshot with camelCase keys.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    daily_deposit_limit: Decimal = Field(
        default=Decimal("25000.00"),
        gt=0,
        alias="dailyDepositLimit",
    )
    daily_withdrawal_limit: Decimal = Field(
        default=Decimal("5000.00"),
        gt=0,
        alias="dailyWithdrawalLimit",
    )
    min_balance: Decimal = Field(
        default=Decimal("10.00"),
        ge=0,
        alias="minBalance",
    )
    max_deposit_per_transaction: Decimal = Field(
        default=Decimal("10000.00"),
        gt=0,
        alias="maxDepositPerTransaction",
    )
    # Advisory only, the engine never reads it
    session_timeout: int = Field(
        default=1800,
        ge=0,
        alias="sessionTimeout",
    )

    @field_validator(
        "daily_deposit_limit",
        "daily_withdrawal_limit",
        "min_balance",
        "max_deposit_per_transaction",
        mode="before",
    )
    @classmethod
    def round_limits(cls, v: Any) -> Any:
        return _money(v)

    @classmethod
    def from_settings(cls) -> "Policy":
        """Build the default policy from configuration."""
        policy = get_settings().policy
        return cls(
            daily_deposit_limit=policy.daily_deposit_limit,
            daily_withdrawal_limit=policy.daily_withdrawal_limit,
            min_balance=policy.min_balance,
            max_deposit_per_transaction=policy.max_deposit_per_transaction,
            session_timeout=policy.session_timeout,
        )

    def merged_with(self, overrides: dict) -> "Policy":
        """
        Return a copy with the given snapshot keys applied.

        Keys may be camelCase or snake_case; unknown keys are ignored.
        Each known key is validated on its own, so one bad value falls back
        to the current one without discarding the rest.
        """
        aliases = {name: field.alias for name, field in Policy.model_fields.items()}
        merged = self
        for key, value in overrides.items():
            if value is None:
                continue
            key = aliases.get(key) or key
            try:
                merged = Policy.model_validate({**merged.to_snapshot(), key: value})
            except ValidationError as e:
                logger.warning(
                    "policy_value_ignored",
                    key=key,
                    error=str(e),
                )
        return merged

    def to_snapshot(self) -> dict:
        return {
            "dailyDepositLimit": float(self.daily_deposit_limit),
            "dailyWithdrawalLimit": float(self.daily_withdrawal_limit),
            "minBalance": float(self.min_balance),
            "maxDepositPerTransaction": float(self.max_deposit_per_transaction),
            "sessionTimeout": self.session_timeout,
        }


# =============================================================================
# RECORDS
# =============================================================================

class Transaction(BaseModel):
    """
    A single deposit or withdrawal.

    CRITICAL: balance_after is snapshotted at creation time and is never
    recomputed, even if earlier history changes.
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    id: int = Field(..., description="Epoch milliseconds, strictly increasing")
    type: TransactionType
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., max_length=500)
    date: datetime = Field(..., description="Creation instant (UTC)")
    balance_after: Decimal = Field(..., alias="balanceAfter")

    @model_validator(mode="before")
    @classmethod
    def fill_snapshot_defaults(cls, data: Any) -> Any:
        """Accept legacy snapshots and fill per-field defaults."""
        if not isinstance(data, dict):
            return data
        data = _with_default_id(data)
        if "balanceAfter" not in data and "balance_after" not in data and "balance" in data:
            data["balanceAfter"] = data.pop("balance")
        if not data.get("description"):
            try:
                data["description"] = TransactionType(data.get("type")).default_description
            except ValueError:
                pass
        return data

    @field_validator("amount", "balance_after", mode="before")
    @classmethod
    def round_money(cls, v: Any) -> Any:
        return _money(v)

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return to_utc(v)

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type is TransactionType.DEPOSIT else -self.amount


class ContactMessage(BaseModel):
    """A message left through the contact form."""
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    id: int
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=5000)
    date: datetime

    @model_validator(mode="before")
    @classmethod
    def fill_id(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return _with_default_id(data)

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return to_utc(v)


# =============================================================================
# AGGREGATE ROOT
# =============================================================================

class Ledger(BaseModel):
    """
    The mutable aggregate root.

    Invariant: balance == starting balance + deposits - withdrawals over the
    whole log, and after any engine mutation balance equals
    transactions[0].balance_after.

    Transactions are newest first; insertion order is authoritative.
    """
    model_config = ConfigDict(populate_by_name=True)

    balance: Decimal = Field(default=ZERO)
    transactions: list[Transaction] = Field(default_factory=list)
    contact_messages: list[ContactMessage] = Field(
        default_factory=list,
        alias="contactMessages",
    )
    policy: Policy = Field(default_factory=Policy.from_settings)
    last_backup: Optional[datetime] = Field(default=None, alias="lastBackup")

    @field_validator("balance", mode="before")
    @classmethod
    def round_balance(cls, v: Any) -> Any:
        return _money(v)

    @property
    def newest_id(self) -> int:
        """Largest id across transactions and messages (0 if empty)."""
        ids = [t.id for t in self.transactions] + [m.id for m in self.contact_messages]
        return max(ids, default=0)


class Rejection(BaseModel):
    """
    A refused operation.

    Returned instead of the ledger; the ledger is untouched.
    """
    model_config = ConfigDict(frozen=True)

    reason: RejectionReason
    message: str
    headroom: Optional[Decimal] = Field(
        default=None,
        description="Remaining amount under a daily limit (EXCEEDS_DAILY_LIMIT only)"
    )


def next_record_id(ledger: Ledger, now: datetime) -> int:
    """Time-based id that never goes backwards, even under clock skew."""
    return max(epoch_millis(now), ledger.newest_id + 1)
