"""
Shared fixtures.

Every test runs against a fixed, timezone-aware "now" so daily and
monthly windows are deterministic. Settings are isolated per test: the
data directory points at the test's own tmp_path and no BANKFLOW_
variable from the developer's shell leaks in.
"""

import os
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from bankflow.config import get_settings
from bankflow.models.ledger import Ledger, Policy
from bankflow.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage
from bankflow.store import seed_demo

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolate_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    for name in list(os.environ):
        if name.startswith("BANKFLOW_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("BANKFLOW_STORAGE_DATA_DIR", os.fspath(tmp_path / "data"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def empty_ledger() -> Ledger:
    """Zero balance, no history, default policy."""
    return Ledger(balance=Decimal("0"), policy=Policy())


@pytest.fixture
def demo_ledger(now) -> Ledger:
    return seed_demo(now)


@pytest.fixture
def memory_storage() -> InMemoryLedgerStorage:
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()
