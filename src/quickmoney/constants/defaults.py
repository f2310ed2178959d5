"""
Built-in registry data used on first run and whenever a stored
collection is missing or unreadable.
"""

from __future__ import annotations

from ..models import Account, Category, CategoryType

AUTO_NOTE_PREFIX = "[auto] "
UNKNOWN_LABEL = "unknown"

_EXPENSE_CATEGORIES = [
    ("food", "Food", "🍱", "#FF6384"),
    ("transport", "Transport", "🚌", "#36A2EB"),
    ("shopping", "Shopping", "🛍️", "#FFCE56"),
    ("entertainment", "Entertainment", "🎮", "#4BC0C0"),
    ("daily", "Daily Goods", "🧻", "#9966FF"),
    ("medical", "Medical", "💊", "#FF9F40"),
    ("housing", "Housing", "🏠", "#C9CBCF"),
    ("other_exp", "Other", "✨", "#4D5360"),
]

_INCOME_CATEGORIES = [
    ("salary", "Salary", "💰", "#32D74B"),
    ("bonus", "Bonus", "🧧", "#FFD700"),
    ("investment", "Investment", "📈", "#5AC8FA"),
    ("part_time", "Part-time", "🛵", "#FF2D55"),
    ("other_inc", "Other", "🧧", "#AF52DE"),
]


def default_categories() -> list[Category]:
    """Fresh list of the built-in expense then income categories."""

    categories = [
        Category(id=cid, label=label, icon=icon, color=color, type=CategoryType.EXPENSE)
        for cid, label, icon, color in _EXPENSE_CATEGORIES
    ]
    categories.extend(
        Category(id=cid, label=label, icon=icon, color=color, type=CategoryType.INCOME)
        for cid, label, icon, color in _INCOME_CATEGORIES
    )
    return categories


def default_accounts() -> list[Account]:
    return [
        Account(
            id="acc_1",
            name="Current Account",
            type="CURRENT ACCOUNT",
            number="223012419",
            balance=50000.0,
            initial_balance=50000.0,
            icon="🏦",
        ),
        Account(
            id="acc_2",
            name="Cash",
            type="CASH",
            number="----",
            balance=5000.0,
            initial_balance=5000.0,
            icon="💵",
        ),
    ]
