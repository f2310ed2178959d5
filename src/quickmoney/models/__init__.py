"""Ledger record and table exports."""

from .account import Account
from .category import Category, CategoryType
from .ledger_state import LedgerState
from .recurring import Frequency, RecurringTemplate
from .snapshot import BackupSnapshot
from .stored_state import StoredState
from .transaction import TYPE_LABELS, Transaction, TransactionType

__all__ = [
    "Account",
    "BackupSnapshot",
    "Category",
    "CategoryType",
    "Frequency",
    "LedgerState",
    "RecurringTemplate",
    "StoredState",
    "TYPE_LABELS",
    "Transaction",
    "TransactionType",
]
