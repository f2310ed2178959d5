"""Backup snapshot value object."""

from __future__ import annotations

from typing import Optional

from pydantic import Field

from .account import Account
from .base import LedgerModel
from .category import Category
from .recurring import RecurringTemplate
from .transaction import Transaction


class BackupSnapshot(LedgerModel):
    """Full-state serialization written to and read from backup files.

    A collection left as ``None`` was absent from the file (older format) and
    must not overwrite current data on restore.
    """

    version: int = Field(default=1, ge=1)
    exported_at: str = ""
    transactions: Optional[list[Transaction]] = None
    categories: Optional[list[Category]] = None
    accounts: Optional[list[Account]] = None
    recurring_templates: Optional[list[RecurringTemplate]] = None

    def collections(self) -> dict[str, Optional[list]]:
        return {
            "transactions": self.transactions,
            "categories": self.categories,
            "accounts": self.accounts,
            "recurring_templates": self.recurring_templates,
        }
