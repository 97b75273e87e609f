"""Ledger snapshot store."""

from bankflow.store.ledger_store import (
    DEMO_BALANCE,
    CorruptStateError,
    clear_history,
    dumps,
    load,
    load_snapshot,
    replace,
    seed_demo,
    serialize,
)

__all__ = [
    "DEMO_BALANCE",
    "CorruptStateError",
    "clear_history",
    "dumps",
    "load",
    "load_snapshot",
    "replace",
    "seed_demo",
    "serialize",
]
