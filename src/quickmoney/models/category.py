"""Category registry records."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import Field

from .base import LedgerModel


class CategoryType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class Category(LedgerModel):
    """Transaction category used for aggregation and budgets.

    ``budget`` is a monthly spending cap and only meaningful for expense
    categories; ``None`` means no budget is set.
    """

    id: str = Field(min_length=1)
    label: str
    icon: str = ""
    color: str = ""
    type: CategoryType = CategoryType.EXPENSE
    budget: Optional[float] = Field(default=None, ge=0)
