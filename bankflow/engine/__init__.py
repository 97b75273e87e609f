"""Transaction engine package."""

from bankflow.engine.messages import clear_messages, submit_message
from bankflow.engine.transactions import TransactionResult, deposit, withdraw

__all__ = [
    "TransactionResult",
    "clear_messages",
    "deposit",
    "submit_message",
    "withdraw",
]
