"""In-memory ledger state passed explicitly between services."""

from __future__ import annotations

from dataclasses import dataclass, field

from .account import Account
from .category import Category
from .recurring import RecurringTemplate
from .transaction import Transaction


@dataclass
class LedgerState:
    """The four persisted collections for one user namespace."""

    transactions: list[Transaction] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    accounts: list[Account] = field(default_factory=list)
    recurring_templates: list[RecurringTemplate] = field(default_factory=list)

    def copy(self) -> "LedgerState":
        """Deep copy; records are pydantic models and are copied individually."""

        return LedgerState(
            transactions=[t.model_copy(deep=True) for t in self.transactions],
            categories=[c.model_copy(deep=True) for c in self.categories],
            accounts=[a.model_copy(deep=True) for a in self.accounts],
            recurring_templates=[r.model_copy(deep=True) for r in self.recurring_templates],
        )
