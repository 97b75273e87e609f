"""
Tests for aggregate queries and CSV export
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from bankflow.export import CSV_HEADER, export_csv, export_filename
from bankflow.models.ledger import Ledger, Policy, Transaction, TransactionType
from bankflow.models.stats import TransactionFilter, TransactionSort
from bankflow.queries import (
    build_stats,
    filter_transactions,
    limit_usage,
    max_withdrawal,
    monthly_stats,
    today_deposits,
    today_withdrawals,
    transaction_summary,
)

_counter = iter(range(1, 10_000))


def _tx(kind: str, amount: str, date: datetime, balance_after: str = "0", description: str = "") -> Transaction:
    return Transaction(
        id=next(_counter),
        type=TransactionType(kind),
        amount=Decimal(amount),
        description=description or TransactionType(kind).default_description,
        date=date,
        balance_after=Decimal(balance_after),
    )


@pytest.fixture
def history(now) -> Ledger:
    """Mixed history: today, earlier this month and last month."""
    return Ledger(
        balance=Decimal("620.50"),
        policy=Policy(),
        transactions=[
            _tx("withdraw", "40", now - timedelta(hours=1)),
            _tx("deposit", "100", now - timedelta(hours=2)),
            _tx("deposit", "500", now.replace(day=5)),
            _tx("withdraw", "40", now.replace(day=3)),
            _tx("deposit", "100.5", now.replace(month=9, day=30)),
        ],
    )


class TestDailyTotals:
    """Tests for the calendar-day windows."""

    def test_today_totals(self, history, now):
        """Only today's transactions count."""
        assert today_deposits(history, now) == Decimal("100.00")
        assert today_withdrawals(history, now) == Decimal("40.00")

    def test_window_uses_now_timezone(self):
        """A late-evening UTC transaction belongs to the next day further east."""
        tokyo = timezone(timedelta(hours=9))
        ledger = Ledger(policy=Policy(), transactions=[
            _tx("deposit", "70", datetime(2026, 10, 18, 20, 0, tzinfo=timezone.utc)),
        ])
        assert today_deposits(ledger, datetime(2026, 10, 19, 9, 0, tzinfo=tokyo)) == Decimal("70.00")
        assert today_deposits(ledger, datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)) == Decimal("0.00")


class TestMonthlyStats:
    """Tests for monthly_stats()."""

    def test_current_month_only(self, history, now):
        """September is excluded; October is aggregated."""
        stats = monthly_stats(history, now)
        assert stats.total_deposits == Decimal("600.00")
        assert stats.total_withdrawals == Decimal("80.00")
        assert stats.net == Decimal("520.00")
        assert stats.deposit_count == 2
        assert stats.withdrawal_count == 2
        assert stats.transaction_count == 4
        assert stats.average_transaction == Decimal("170.00")
        assert stats.largest_transaction == Decimal("500.00")

    def test_empty_month(self, now):
        """No transactions means zeros, not an error."""
        stats = monthly_stats(Ledger(policy=Policy()), now)
        assert stats.average_transaction == Decimal("0.00")
        assert stats.largest_transaction == Decimal("0.00")
        assert stats.transaction_count == 0

    def test_average_is_rounded(self, now):
        """Averages are rounded to cents."""
        ledger = Ledger(policy=Policy(), transactions=[
            _tx("deposit", "10", now),
            _tx("deposit", "10", now),
            _tx("deposit", "10.01", now),
        ])
        assert monthly_stats(ledger, now).average_transaction == Decimal("10.00")

    def test_snapshot_keys(self, history, now):
        """Serialized stats use the snapshot's camelCase keys."""
        snapshot = build_stats(history, now).to_snapshot()
        assert snapshot["totalTransactions"] == 5
        assert snapshot["lastBackup"] is None
        assert snapshot["monthlyStats"]["totalAmount"] == 520.0
        assert snapshot["monthlyStats"]["depositCount"] == 2


class TestSummaryAndLimits:
    """Tests for all-time totals and limit usage."""

    def test_transaction_summary(self, history):
        """All-time totals include last month."""
        summary = transaction_summary(history)
        assert summary.total_deposits == Decimal("700.50")
        assert summary.total_withdrawals == Decimal("80.00")
        assert summary.net_change == Decimal("620.50")

    def test_limit_usage(self, history, now):
        """Percent and headroom follow today's totals."""
        usage = limit_usage(history, now)
        assert usage.today_deposits == Decimal("100.00")
        assert usage.deposit_headroom == Decimal("24900.00")
        assert usage.deposit_percent == pytest.approx(0.4)
        assert usage.withdrawal_headroom == Decimal("4960.00")
        assert usage.withdrawal_percent == pytest.approx(0.8)

    def test_limit_usage_is_capped(self, now):
        """Imported history above the limit shows 100% and no headroom."""
        ledger = Ledger(policy=Policy(), transactions=[_tx("withdraw", "6000", now)])
        usage = limit_usage(ledger, now)
        assert usage.withdrawal_percent == 100.0
        assert usage.withdrawal_headroom == Decimal("0.00")

    @pytest.mark.parametrize("balance,expected", [
        ("1250.75", "1240.75"),
        ("10", "0.00"),
        ("5", "0.00"),
    ])
    def test_max_withdrawal(self, balance, expected):
        """Balance minus the minimum, never negative."""
        ledger = Ledger(balance=Decimal(balance), policy=Policy())
        assert max_withdrawal(ledger) == Decimal(expected)


class TestFilterTransactions:
    """Tests for filter_transactions()."""

    def test_filter_by_type(self, history):
        """Filtering keeps one direction."""
        deposits = filter_transactions(history, TransactionFilter.DEPOSIT)
        assert {t.type for t in deposits} == {TransactionType.DEPOSIT}
        assert len(deposits) == 3
        assert len(filter_transactions(history, "withdraw")) == 2

    def test_sort_by_date(self, history):
        """Newest and oldest orderings."""
        newest = filter_transactions(history, sort_by=TransactionSort.NEWEST)
        oldest = filter_transactions(history, sort_by="oldest")
        assert newest == sorted(history.transactions, key=lambda t: t.date, reverse=True)
        assert oldest == list(reversed(newest))

    def test_sort_by_amount_is_stable(self, history):
        """Equal amounts keep their log order."""
        high = filter_transactions(history, sort_by=TransactionSort.AMOUNT_HIGH)
        assert [t.amount for t in high] == [
            Decimal("500.00"), Decimal("100.50"), Decimal("100.00"),
            Decimal("40.00"), Decimal("40.00"),
        ]
        tied = [t for t in high if t.amount == Decimal("40.00")]
        assert tied == [history.transactions[0], history.transactions[3]]

        low = filter_transactions(history, sort_by=TransactionSort.AMOUNT_LOW)
        assert low[0] is history.transactions[0]
        assert low[-1].amount == Decimal("500.00")

    def test_does_not_reorder_ledger(self, history):
        """Display sorting never touches the stored order."""
        before = list(history.transactions)
        filter_transactions(history, sort_by=TransactionSort.AMOUNT_LOW)
        assert history.transactions == before

    def test_unknown_filter_rejected(self, history):
        """Unknown filter names are a programming error."""
        with pytest.raises(ValueError):
            filter_transactions(history, "refunds")


class TestCsvExport:
    """Tests for export_csv() and export_filename()."""

    def test_header_only_when_empty(self):
        """An empty log still has a header."""
        assert export_csv([], tz=timezone.utc) == CSV_HEADER + "\n"

    def test_rows(self, now):
        """Dates are M/D/YYYY, amounts have two decimals, descriptions are quoted."""
        transactions = [
            _tx("withdraw", "249.25", now, "1250.75", 'Say "hi", ok'),
            _tx("deposit", "500", now.replace(day=5), "1500"),
        ]
        assert export_csv(transactions, tz=timezone.utc).split("\n") == [
            "Date,Description,Type,Amount,Balance",
            '10/19/2026,"Say ""hi"", ok",withdraw,249.25,1250.75',
            '10/5/2026,"Deposit",deposit,500.00,1500.00',
            "",
        ]

    def test_dates_are_local(self):
        """The date column uses the given timezone."""
        early_utc = datetime(2026, 10, 19, 2, 0, tzinfo=timezone.utc)
        text = export_csv([_tx("deposit", "1", early_utc)], tz=timezone(timedelta(hours=-5)))
        assert text.split("\n")[1].startswith("10/18/2026,")

    def test_filename_uses_utc_date(self):
        """The download name is dated in UTC."""
        evening = datetime(2026, 10, 19, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert export_filename(evening) == "bankflow-transactions-2026-10-20.csv"
