"""Transaction log records."""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import Field, model_validator

from .base import LedgerModel


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


TYPE_LABELS = {
    TransactionType.INCOME: "Income",
    TransactionType.EXPENSE: "Expense",
    TransactionType.TRANSFER: "Transfer",
}


class Transaction(LedgerModel):
    """A single money movement.

    ``id`` is the creation instant in epoch milliseconds and doubles as the
    chronological sort key. Reports bucket by ``date`` (the user-editable
    ledger date), never by ``id``.
    """

    id: Optional[int] = None
    amount: float = Field(gt=0)
    type: TransactionType = TransactionType.EXPENSE
    category_id: str = ""
    account_id: str
    to_account_id: Optional[str] = None
    fee: Optional[float] = Field(default=None, ge=0)
    date: dt.date = Field(default_factory=dt.date.today)
    time: str = ""
    note: Optional[str] = None
    status: str = "completed"

    @model_validator(mode="after")
    def _transfer_fields_only_on_transfers(self) -> "Transaction":
        if self.type is not TransactionType.TRANSFER and (self.to_account_id or self.fee):
            raise ValueError("toAccountId and fee are only valid on transfers")
        return self

    @property
    def type_label(self) -> str:
        return TYPE_LABELS[self.type]
