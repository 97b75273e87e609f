"""
Tests for the transaction engine and contact messages

Each rule is checked on its own, then the precedence between rules,
then whole sequences against the balance invariant.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from bankflow.engine import clear_messages, deposit, submit_message, withdraw
from bankflow.models.ledger import (
    ContactMessage,
    Ledger,
    Rejection,
    RejectionReason,
    TransactionType,
)
from bankflow.utils.date_utils import epoch_millis


def _funded(amount: str) -> Ledger:
    """A ledger with an opening balance and no history."""
    return Ledger(balance=Decimal(amount))


def _assert_rejected(result, reason: RejectionReason) -> Rejection:
    assert isinstance(result, Rejection)
    assert result.reason == reason
    return result


class TestDeposit:
    """Tests for deposit()."""

    def test_deposit_into_empty_ledger(self, empty_ledger, now):
        """A valid deposit updates balance and prepends one transaction."""
        result = deposit(empty_ledger, 500, now=now)

        assert result is empty_ledger
        assert result.balance == Decimal("500.00")
        assert len(result.transactions) == 1
        transaction = result.transactions[0]
        assert transaction.type is TransactionType.DEPOSIT
        assert transaction.amount == Decimal("500.00")
        assert transaction.balance_after == Decimal("500.00")
        assert transaction.description == "Deposit"
        assert transaction.id == epoch_millis(now)

    def test_deposit_accepts_numeric_string(self, empty_ledger, now):
        """Form input arrives as text."""
        result = deposit(empty_ledger, "19.99", "Refund", now=now)
        assert result.balance == Decimal("19.99")
        assert result.transactions[0].description == "Refund"

    def test_blank_description_uses_default(self, empty_ledger, now):
        """Whitespace-only descriptions fall back to the default."""
        result = deposit(empty_ledger, 5, "   ", now=now)
        assert result.transactions[0].description == "Deposit"

    def test_amount_rounded_half_up(self, empty_ledger, now):
        """Amounts are rounded to cents before anything else."""
        result = deposit(empty_ledger, "10.005", now=now)
        assert result.transactions[0].amount == Decimal("10.01")

    @pytest.mark.parametrize("amount", [0, -5, "abc", "", None, "nan", "inf", 0.004])
    def test_invalid_amounts(self, empty_ledger, now, amount):
        """Zero, negative, non-numeric and sub-cent amounts are refused."""
        result = deposit(empty_ledger, amount, now=now)
        rejection = _assert_rejected(result, RejectionReason.INVALID_AMOUNT)
        assert rejection.message == "Please enter a valid amount greater than 0"
        assert empty_ledger.transactions == []
        assert empty_ledger.balance == Decimal("0.00")

    def test_per_transaction_cap(self, empty_ledger, now):
        """Just over the cap is refused."""
        result = deposit(empty_ledger, 10000.01, now=now)
        rejection = _assert_rejected(result, RejectionReason.EXCEEDS_PER_TRANSACTION_CAP)
        assert rejection.message == "Maximum deposit amount is $10000.00 per transaction"

    def test_huge_amount_hits_cap(self, empty_ledger, now):
        """Amounts far beyond the cap are refused by the cap, not by rounding."""
        result = deposit(empty_ledger, 1e30, now=now)
        _assert_rejected(result, RejectionReason.EXCEEDS_PER_TRANSACTION_CAP)
        assert empty_ledger.transactions == []

    @pytest.mark.parametrize("amount", ["1e200", "-1e200", 10 ** 120])
    def test_out_of_range_amounts_invalid(self, empty_ledger, now, amount):
        """Magnitudes past 1e99 are not amounts at all."""
        result = deposit(empty_ledger, amount, now=now)
        _assert_rejected(result, RejectionReason.INVALID_AMOUNT)

    def test_cap_applies_after_rounding(self, empty_ledger, now):
        """10000.004 rounds to exactly the cap and is allowed."""
        result = deposit(empty_ledger, 10000.004, now=now)
        assert isinstance(result, Ledger)
        assert result.balance == Decimal("10000.00")

    def test_daily_limit(self, empty_ledger, now):
        """The third 10000 deposit of the day would pass 25000."""
        deposit(empty_ledger, 10000, now=now)
        deposit(empty_ledger, 10000, now=now)

        result = deposit(empty_ledger, 10000, now=now)
        rejection = _assert_rejected(result, RejectionReason.EXCEEDS_DAILY_LIMIT)
        assert rejection.headroom == Decimal("5000.00")
        assert rejection.message == (
            "Daily deposit limit exceeded. You can deposit up to $5000.00 more today."
        )
        assert empty_ledger.balance == Decimal("20000.00")

    def test_daily_limit_exactly_reached(self, empty_ledger, now):
        """Reaching the limit exactly is allowed."""
        deposit(empty_ledger, 10000, now=now)
        deposit(empty_ledger, 10000, now=now)
        result = deposit(empty_ledger, 5000, now=now)
        assert isinstance(result, Ledger)
        assert result.balance == Decimal("25000.00")

    def test_daily_limit_resets_next_calendar_day(self, empty_ledger, now):
        """Yesterday's deposits do not count against today."""
        deposit(empty_ledger, 10000, now=now)
        deposit(empty_ledger, 10000, now=now)
        deposit(empty_ledger, 5000, now=now)

        result = deposit(empty_ledger, 10000, now=now + timedelta(days=1))
        assert isinstance(result, Ledger)
        assert result.balance == Decimal("35000.00")

    def test_daily_window_follows_local_midnight(self, empty_ledger):
        """The day is the calendar day in now's timezone, not a 24h window."""
        eastern = timezone(timedelta(hours=-4))
        evening = datetime(2026, 10, 19, 23, 30, tzinfo=eastern)
        deposit(empty_ledger, 10000, now=evening)
        deposit(empty_ledger, 10000, now=evening)
        deposit(empty_ledger, 5000, now=evening)
        assert empty_ledger.balance == Decimal("25000.00")

        # One hour later it is a new local day
        result = deposit(empty_ledger, 100, now=evening + timedelta(hours=1))
        assert isinstance(result, Ledger)

    def test_cap_checked_before_daily_limit(self, empty_ledger, now):
        """When both are broken the cap message wins."""
        deposit(empty_ledger, 10000, now=now)
        deposit(empty_ledger, 10000, now=now)
        result = deposit(empty_ledger, 10001, now=now)
        _assert_rejected(result, RejectionReason.EXCEEDS_PER_TRANSACTION_CAP)

    def test_ids_strictly_increase_within_one_millisecond(self, empty_ledger, now):
        """Several transactions at the same instant still get unique ids."""
        for _ in range(3):
            deposit(empty_ledger, 1, now=now)
        ids = [t.id for t in empty_ledger.transactions]
        assert ids == sorted(ids, reverse=True)
        assert len(set(ids)) == 3


class TestWithdraw:
    """Tests for withdraw()."""

    def test_withdraw(self, now):
        """A valid withdrawal reduces the balance."""
        ledger = _funded("1000")
        result = withdraw(ledger, 200, now=now)
        assert result.balance == Decimal("800.00")
        transaction = result.transactions[0]
        assert transaction.type is TransactionType.WITHDRAW
        assert transaction.description == "Withdrawal"
        assert transaction.balance_after == Decimal("800.00")

    def test_withdraw_to_exact_minimum(self, now):
        """Leaving exactly the minimum balance is allowed."""
        result = withdraw(_funded("1000"), 990, now=now)
        assert isinstance(result, Ledger)
        assert result.balance == Decimal("10.00")

    def test_below_minimum_balance(self, now):
        """Leaving a cent less than the minimum is refused."""
        ledger = _funded("1000")
        result = withdraw(ledger, "990.01", now=now)
        rejection = _assert_rejected(result, RejectionReason.BELOW_MINIMUM_BALANCE)
        assert rejection.message == "Account must maintain a minimum balance of $10.00"
        assert ledger.balance == Decimal("1000.00")

    def test_insufficient_funds(self, now):
        """More than the balance is refused."""
        result = withdraw(_funded("100"), "100.01", now=now)
        rejection = _assert_rejected(result, RejectionReason.INSUFFICIENT_FUNDS)
        assert rejection.message == "Insufficient funds for this withdrawal"

    def test_huge_amount_is_insufficient_funds(self, empty_ledger, now):
        """A 1e40 withdrawal is refused as insufficient funds."""
        before = empty_ledger.model_dump()
        result = withdraw(empty_ledger, "1e40", now=now)
        _assert_rejected(result, RejectionReason.INSUFFICIENT_FUNDS)
        assert empty_ledger.model_dump() == before

    def test_whole_balance_hits_minimum_rule(self, now):
        """Withdrawing everything is covered by funds but not by the minimum."""
        result = withdraw(_funded("100"), 100, now=now)
        _assert_rejected(result, RejectionReason.BELOW_MINIMUM_BALANCE)

    def test_invalid_amount(self, now):
        """Non-numeric input is refused before anything else."""
        result = withdraw(_funded("0"), "lots", now=now)
        _assert_rejected(result, RejectionReason.INVALID_AMOUNT)

    def test_daily_withdrawal_limit(self, now):
        """The daily withdrawal limit reports the remaining headroom."""
        ledger = _funded("20000")
        withdraw(ledger, 4000, now=now)

        result = withdraw(ledger, "1000.01", now=now)
        rejection = _assert_rejected(result, RejectionReason.EXCEEDS_DAILY_LIMIT)
        assert rejection.headroom == Decimal("1000.00")
        assert rejection.message == (
            "Daily withdrawal limit exceeded. You can withdraw up to $1000.00 more today."
        )

    def test_insufficient_funds_checked_before_daily_limit(self, now):
        """Insufficient funds wins over the daily limit."""
        result = withdraw(_funded("100"), 6000, now=now)
        _assert_rejected(result, RejectionReason.INSUFFICIENT_FUNDS)

    def test_daily_limit_checked_before_minimum_balance(self, now):
        """The daily limit wins over the minimum balance."""
        result = withdraw(_funded("5005"), "5000.50", now=now)
        _assert_rejected(result, RejectionReason.EXCEEDS_DAILY_LIMIT)

    def test_deposits_do_not_use_withdrawal_limit(self, now):
        """Each direction has its own daily total."""
        ledger = _funded("0")
        deposit(ledger, 10000, now=now)
        result = withdraw(ledger, 5000, now=now)
        assert isinstance(result, Ledger)
        assert result.balance == Decimal("5000.00")


class TestAtomicity:
    """A rejected call leaves the ledger exactly as it was."""

    @pytest.mark.parametrize("operation,amount", [
        (deposit, -1),
        (deposit, 20000),
        (withdraw, 5000),
        (withdraw, 1245),
    ])
    def test_rejection_does_not_mutate(self, demo_ledger, now, operation, amount):
        """Snapshot before and after a rejected call is identical."""
        before = demo_ledger.model_dump()
        result = operation(demo_ledger, amount, now=now)
        assert isinstance(result, Rejection)
        assert demo_ledger.model_dump() == before


class TestBalanceInvariant:
    """Balance always equals the starting balance plus the signed log."""

    def test_sequence_keeps_invariant(self, empty_ledger, now):
        """Accepted and rejected calls mixed together."""
        steps = [
            (deposit, "1000"),
            (withdraw, "250.50"),
            (deposit, "0.01"),
            (withdraw, "5000"),
            (deposit, "-3"),
            (withdraw, "739.51"),
            (deposit, "10000.01"),
            (deposit, "333.33"),
        ]
        for operation, amount in steps:
            operation(empty_ledger, amount, now=now)
            signed = sum(
                (t.signed_amount for t in empty_ledger.transactions),
                Decimal("0"),
            )
            assert empty_ledger.balance == signed
            if empty_ledger.transactions:
                assert empty_ledger.balance == empty_ledger.transactions[0].balance_after

        assert empty_ledger.balance == Decimal("343.33")
        assert len(empty_ledger.transactions) == 5


class TestMessages:
    """Tests for contact messages."""

    def test_submit_message(self, empty_ledger, now):
        """A valid message is stored newest first, trimmed."""
        result = submit_message(
            empty_ledger, " Jane ", "jane@example.com", "Account Question", "Hello", now=now
        )
        assert isinstance(result, ContactMessage)
        assert result.name == "Jane"
        assert result.id == epoch_millis(now)
        assert empty_ledger.contact_messages == [result]

        second = submit_message(
            empty_ledger, "Jo", "jo@example.com", "Feedback", "Nice", now=now
        )
        assert empty_ledger.contact_messages[0] is second
        assert second.id == result.id + 1

    @pytest.mark.parametrize("field", range(4))
    def test_all_fields_required(self, empty_ledger, now, field):
        """Any blank field is refused."""
        values = ["Jane", "jane@example.com", "Subject", "Hello"]
        values[field] = "   "
        result = submit_message(empty_ledger, *values, now=now)
        rejection = _assert_rejected(result, RejectionReason.INVALID_MESSAGE)
        assert rejection.message == "Please fill in all required fields"
        assert empty_ledger.contact_messages == []

    @pytest.mark.parametrize("email", ["jane", "jane@example", "ja ne@example.com", "@example.com"])
    def test_invalid_email(self, empty_ledger, now, email):
        """The email must look like an address."""
        result = submit_message(empty_ledger, "Jane", email, "Subject", "Hello", now=now)
        rejection = _assert_rejected(result, RejectionReason.INVALID_MESSAGE)
        assert rejection.message == "Please enter a valid email address"

    def test_clear_messages(self, demo_ledger):
        """Clearing removes messages and nothing else."""
        balance = demo_ledger.balance
        clear_messages(demo_ledger)
        assert demo_ledger.contact_messages == []
        assert demo_ledger.balance == balance
        assert len(demo_ledger.transactions) == 3
