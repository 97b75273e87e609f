"""
CSV export of the transaction log.

Format:
    Date,Description,Type,Amount,Balance
    10/18/2026,"Grocery Shopping",withdraw,249.25,1250.75

The description is always quoted with internal quotes doubled; every
other column is written bare.
"""

from datetime import datetime, tzinfo
from typing import Iterable, Optional

from bankflow.models.ledger import Transaction
from bankflow.utils.date_utils import resolve_now, to_utc

CSV_HEADER = "Date,Description,Type,Amount,Balance"


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def _local_date(value: datetime, tz: Optional[tzinfo]) -> str:
    """M/D/YYYY in the given zone (system zone when tz is None)."""
    local = to_utc(value).astimezone(tz)
    return f"{local.month}/{local.day}/{local.year}"


def export_csv(
    transactions: Iterable[Transaction],
    tz: Optional[tzinfo] = None,
) -> str:
    """Render transactions, in the given order, as CSV text."""
    lines = [CSV_HEADER]
    for transaction in transactions:
        lines.append(",".join([
            _local_date(transaction.date, tz),
            _quote(transaction.description),
            transaction.type.value,
            f"{transaction.amount:.2f}",
            f"{transaction.balance_after:.2f}",
        ]))
    return "\n".join(lines) + "\n"


def export_filename(now: Optional[datetime] = None) -> str:
    """Download name, dated in UTC: bankflow-transactions-2026-10-19.csv"""
    return f"bankflow-transactions-{to_utc(resolve_now(now)).date().isoformat()}.csv"
