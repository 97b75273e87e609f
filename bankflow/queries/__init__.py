"""Ledger aggregate queries."""

from bankflow.queries.aggregates import (
    build_stats,
    filter_transactions,
    limit_usage,
    max_withdrawal,
    monthly_stats,
    today_deposits,
    today_withdrawals,
    transaction_summary,
)

__all__ = [
    "build_stats",
    "filter_transactions",
    "limit_usage",
    "max_withdrawal",
    "monthly_stats",
    "today_deposits",
    "today_withdrawals",
    "transaction_summary",
]
