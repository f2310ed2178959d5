"""Recurring transaction templates."""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import Field

from .base import LedgerModel
from .transaction import TransactionType


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class RecurringTemplate(LedgerModel):
    """User rule that materializes a transaction once per period.

    Only ``last_generated`` is written by the scheduler; every other field is
    user-owned.
    """

    id: str = Field(min_length=1)
    label: str
    amount: float = Field(gt=0)
    type: TransactionType = TransactionType.EXPENSE
    category_id: str = ""
    account_id: str
    to_account_id: Optional[str] = None
    frequency: Frequency = Frequency.MONTHLY
    last_generated: dt.date
    active: bool = True
