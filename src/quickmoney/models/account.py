"""Account registry records."""

from __future__ import annotations

from typing import Optional

from pydantic import Field

from .base import LedgerModel


class Account(LedgerModel):
    """Money container whose ``balance`` is materialized, not derived.

    ``balance`` is mutated by every transaction create/edit/delete touching the
    account. ``initial_balance`` records the opening balance so drift against
    the ledger fold can be detected.
    """

    id: str = Field(min_length=1)
    name: str
    type: str = ""
    number: str = ""
    balance: float = 0.0
    icon: Optional[str] = None
    holder_name: Optional[str] = None
    initial_balance: Optional[float] = None
