"""Persistence adapter: ledger state stored per user namespace.

Each collection is its own key, so one unreadable payload degrades to the
built-in defaults without blocking the others.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable

from pydantic import TypeAdapter

from ..constants.defaults import default_accounts, default_categories
from ..domain.repositories import StateRepository
from ..models import Account, Category, LedgerState, RecurringTemplate, Transaction

logger = logging.getLogger(__name__)

TRANSACTIONS_KEY = "transactions"
CATEGORIES_KEY = "categories"
ACCOUNTS_KEY = "accounts"
RECURRING_KEY = "recurring_templates"

_COLLECTIONS: dict[str, tuple[TypeAdapter, Callable[[], list[Any]]]] = {
    TRANSACTIONS_KEY: (TypeAdapter(list[Transaction]), list),
    CATEGORIES_KEY: (TypeAdapter(list[Category]), default_categories),
    ACCOUNTS_KEY: (TypeAdapter(list[Account]), default_accounts),
    RECURRING_KEY: (TypeAdapter(list[RecurringTemplate]), list),
}


def _load_collection(repo: StateRepository, namespace: str, key: str) -> list[Any]:
    adapter, default = _COLLECTIONS[key]
    raw = repo.get(namespace, key)
    if raw is None:
        return default()
    try:
        return adapter.validate_python(json.loads(raw))
    except ValueError as exc:
        # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors.
        logger.warning(
            "Stored collection unreadable, using defaults",
            extra={"namespace": namespace, "key": key, "error": str(exc)},
        )
        return default()


def load_state(repo: StateRepository, namespace: str) -> LedgerState:
    """Read all four collections for ``namespace``."""

    return LedgerState(
        transactions=_load_collection(repo, namespace, TRANSACTIONS_KEY),
        categories=_load_collection(repo, namespace, CATEGORIES_KEY),
        accounts=_load_collection(repo, namespace, ACCOUNTS_KEY),
        recurring_templates=_load_collection(repo, namespace, RECURRING_KEY),
    )


def _dump(records: list[Any]) -> str:
    return json.dumps([record.to_dict() for record in records], ensure_ascii=False)


def save_state(repo: StateRepository, namespace: str, state: LedgerState) -> None:
    """Write every collection for ``namespace``; last write wins."""

    repo.set(namespace, TRANSACTIONS_KEY, _dump(state.transactions))
    repo.set(namespace, CATEGORIES_KEY, _dump(state.categories))
    repo.set(namespace, ACCOUNTS_KEY, _dump(state.accounts))
    repo.set(namespace, RECURRING_KEY, _dump(state.recurring_templates))


class LedgerStore:
    """Holds the live :class:`LedgerState` for one namespace and writes it through.

    ``lock`` guards the state against the auto-backup thread: hold it around
    any mutation and its commit. ``snapshot`` and ``replace`` take it
    themselves.
    """

    def __init__(self, repo: StateRepository, namespace: str):
        self.repo = repo
        self.namespace = namespace
        self.lock = threading.RLock()
        self.state = load_state(repo, namespace)

    def commit(self) -> None:
        with self.lock:
            save_state(self.repo, self.namespace, self.state)

    def snapshot(self) -> LedgerState:
        """Consistent deep copy of the current state."""

        with self.lock:
            return self.state.copy()

    def replace(self, state: LedgerState) -> None:
        """Swap in a whole new state (restore) and persist it."""

        with self.lock:
            self.state = state
            self.commit()
        logger.info(
            "Ledger state replaced",
            extra={
                "namespace": self.namespace,
                "transactions": len(state.transactions),
                "accounts": len(state.accounts),
            },
        )

    def reload(self) -> LedgerState:
        with self.lock:
            self.state = load_state(self.repo, self.namespace)
            return self.state


__all__ = [
    "ACCOUNTS_KEY",
    "CATEGORIES_KEY",
    "LedgerStore",
    "RECURRING_KEY",
    "TRANSACTIONS_KEY",
    "load_state",
    "save_state",
]
