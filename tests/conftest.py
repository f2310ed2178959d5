"""Pytest configuration and shared fixtures for QuickMoney tests.

Provides an isolated SQLite database, a config pointed at ``tmp_path`` and
factories for ledger records, so no test touches the real app data.
"""

from __future__ import annotations

import tempfile
from datetime import date
from pathlib import Path

import pytest
from sqlmodel import SQLModel, create_engine

from quickmoney.config import TestConfig
from quickmoney.infra.database import create_session_factory
from quickmoney.infra.repositories import SQLModelStateRepository
from quickmoney.models import (
    Account,
    Category,
    CategoryType,
    LedgerState,
    Transaction,
    TransactionType,
)
from quickmoney.services import registry


# =============================================================================
# Configuration / Database Fixtures
# =============================================================================


@pytest.fixture
def config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> TestConfig:
    """Config whose data, database and download paths live under tmp_path."""

    data_dir = tmp_path / "instance"
    monkeypatch.setenv("QUICKMONEY_DATA_DIR", str(data_dir))
    monkeypatch.setenv("QUICKMONEY_DATABASE_URL", f"sqlite:///{data_dir / 'test.db'}")
    monkeypatch.setenv("QUICKMONEY_DOWNLOADS_DIR", str(tmp_path / "downloads"))
    monkeypatch.setenv("QUICKMONEY_USER", "tester")
    monkeypatch.delenv("QUICKMONEY_BACKUP_RETENTION", raising=False)
    return TestConfig()


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database for each test.

    Yields:
        Engine: SQLModel engine connected to test database
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(f"sqlite:///{db_path}", echo=False)
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Factory returning transactional session scopes, as repositories expect."""

    return create_session_factory(db_engine)


@pytest.fixture
def state_repo(session_factory) -> SQLModelStateRepository:
    return SQLModelStateRepository(session_factory)


# =============================================================================
# Ledger Fixtures / Factories
# =============================================================================


@pytest.fixture
def state() -> LedgerState:
    """Ledger with two accounts (X=1000, Y=500) and a few categories."""

    ledger = LedgerState()
    registry.add_account(ledger, Account(id="X", name="Checking", balance=1000.0))
    registry.add_account(ledger, Account(id="Y", name="Savings", balance=500.0))
    registry.add_category(ledger, Category(id="food", label="Food", type=CategoryType.EXPENSE, budget=300.0))
    registry.add_category(ledger, Category(id="transport", label="Transport", type=CategoryType.EXPENSE))
    registry.add_category(ledger, Category(id="rent", label="Rent", type=CategoryType.EXPENSE, budget=1000.0))
    registry.add_category(ledger, Category(id="salary", label="Salary", type=CategoryType.INCOME))
    return ledger


@pytest.fixture
def make_tx():
    """Factory for unsaved transactions with sensible defaults."""

    def _make(
        amount: float = 100.0,
        txn_type: TransactionType = TransactionType.EXPENSE,
        *,
        account_id: str = "X",
        category_id: str = "food",
        to_account_id: str | None = None,
        fee: float | None = None,
        on: date | None = None,
        note: str | None = None,
        tx_id: int | None = None,
    ) -> Transaction:
        return Transaction(
            id=tx_id,
            amount=amount,
            type=txn_type,
            account_id=account_id,
            category_id=category_id,
            to_account_id=to_account_id,
            fee=fee,
            date=on or date(2026, 3, 15),
            time="12:00",
            note=note,
        )

    return _make


def balance_of(ledger: LedgerState, account_id: str) -> float:
    acc = registry.get_account(ledger, account_id)
    assert acc is not None
    return acc.balance


def assert_float_equal(actual: float, expected: float, tolerance: float = 0.001) -> None:
    assert abs(actual - expected) <= tolerance, f"{actual} != {expected} (±{tolerance})"
