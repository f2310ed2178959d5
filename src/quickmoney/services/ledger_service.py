"""Pure ledger derivations: balances, aggregates, trend series and projections.

Nothing in this module mutates its inputs or keeps state between calls. All
date filtering and bucketing uses ``Transaction.date`` (the ledger date).
"""

from __future__ import annotations

import calendar
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, Sequence

from ..constants.defaults import UNKNOWN_LABEL
from ..models import Account, Category, LedgerState, Transaction, TransactionType

Effect = tuple[str, float]


# ---------------------------------------------------------------------------
# Balance fold
# ---------------------------------------------------------------------------


def transaction_effects(tx: Transaction) -> list[Effect]:
    """Return the (account_id, delta) pairs a transaction applies.

    Income adds ``amount``; expense subtracts it; a transfer takes
    ``amount + fee`` from the source and gives ``amount`` to the destination.
    """

    if tx.type is TransactionType.INCOME:
        return [(tx.account_id, tx.amount)]
    if tx.type is TransactionType.EXPENSE:
        return [(tx.account_id, -tx.amount)]
    effects: list[Effect] = [(tx.account_id, -(tx.amount + (tx.fee or 0.0)))]
    if tx.to_account_id:
        effects.append((tx.to_account_id, tx.amount))
    return effects


def reversal_effects(tx: Transaction) -> list[Effect]:
    """Inverse of :func:`transaction_effects`."""

    return [(account_id, -delta) for account_id, delta in transaction_effects(tx)]


def transaction_effect(tx: Transaction, account_id: str) -> float:
    """Net change ``tx`` applies to one account (0 when unrelated)."""

    return sum(delta for acc, delta in transaction_effects(tx) if acc == account_id)


def account_balance(
    account_id: str, transactions: Iterable[Transaction], initial: float = 0.0
) -> float:
    """Fold the log into a balance. A plain sum, so order never matters."""

    total = initial + sum(transaction_effect(tx, account_id) for tx in transactions)
    return round(total, 2)


@dataclass(slots=True)
class BalanceDrift:
    """Difference between a materialized balance and the ledger fold."""

    account_id: str
    materialized: float
    expected: float

    @property
    def delta(self) -> float:
        return round(self.materialized - self.expected, 2)


def balances(accounts: Iterable[Account]) -> dict[str, float]:
    """Materialized balances keyed by account id."""

    return {acc.id: acc.balance for acc in accounts}


def total_assets(accounts: Iterable[Account]) -> float:
    return round(sum(acc.balance for acc in accounts), 2)


def detect_drift(state: LedgerState, tolerance: float = 0.005) -> list[BalanceDrift]:
    """Report accounts whose balance no longer matches ``initial + fold``.

    Accounts without a recorded opening balance (older backups) are skipped.
    """

    drifts: list[BalanceDrift] = []
    for acc in state.accounts:
        if acc.initial_balance is None:
            continue
        expected = account_balance(acc.id, state.transactions, initial=acc.initial_balance)
        if abs(acc.balance - expected) > tolerance:
            drifts.append(BalanceDrift(account_id=acc.id, materialized=acc.balance, expected=expected))
    return drifts


# ---------------------------------------------------------------------------
# Filtering and summaries
# ---------------------------------------------------------------------------


def in_range(tx: Transaction, start: Optional[date], end: Optional[date]) -> bool:
    """Inclusive date-range check on the ledger date."""

    if start is not None and tx.date < start:
        return False
    if end is not None and tx.date > end:
        return False
    return True


def month_range(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of a month."""

    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def compute_summary(transactions: Iterable[Transaction]) -> dict[str, float]:
    """Income, expenses and net totals. Transfers move money, so they are ignored."""

    income = 0.0
    expenses = 0.0
    for tx in transactions:
        if tx.type is TransactionType.INCOME:
            income += tx.amount
        elif tx.type is TransactionType.EXPENSE:
            expenses += tx.amount
    return {
        "income": round(income, 2),
        "expenses": round(expenses, 2),
        "net": round(income - expenses, 2),
    }


# ---------------------------------------------------------------------------
# Category aggregation
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class CategoryTotal:
    category_id: str
    label: str
    amount: float
    color: str = ""
    icon: str = ""


def category_totals(
    transactions: Iterable[Transaction],
    categories: Sequence[Category],
    *,
    txn_type: TransactionType = TransactionType.EXPENSE,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[CategoryTotal]:
    """Group by category and sum, largest first.

    Ties keep registry order; ids missing from the registry sort after every
    known category and are labelled ``"unknown"``.
    """

    order = {cat.id: index for index, cat in enumerate(categories)}
    lookup = {cat.id: cat for cat in categories}
    totals: dict[str, float] = {}
    for tx in transactions:
        if tx.type is not txn_type or not in_range(tx, start, end):
            continue
        totals[tx.category_id] = totals.get(tx.category_id, 0.0) + tx.amount

    breakdown: list[CategoryTotal] = []
    for cat_id, amount in totals.items():
        cat = lookup.get(cat_id)
        breakdown.append(
            CategoryTotal(
                category_id=cat_id,
                label=cat.label if cat else UNKNOWN_LABEL,
                amount=round(amount, 2),
                color=cat.color if cat else "",
                icon=cat.icon if cat else "",
            )
        )
    breakdown.sort(key=lambda entry: (-entry.amount, order.get(entry.category_id, len(order))))
    return breakdown


def top_categories(breakdown: Iterable[CategoryTotal], limit: int = 5) -> list[CategoryTotal]:
    return list(breakdown)[:limit]


# ---------------------------------------------------------------------------
# Time bucketing
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class TrendSeries:
    """Fixed-length income/expense series; ``labels`` are day or month numbers."""

    labels: list[int]
    income: list[float]
    expense: list[float]

    @property
    def net(self) -> list[float]:
        return [round(i - e, 2) for i, e in zip(self.income, self.expense)]


def bucket_series(
    transactions: Iterable[Transaction],
    *,
    period: str,
    year: int,
    month: Optional[int] = None,
) -> TrendSeries:
    """Sum income and expense per day of a month or per month of a year.

    ``period="month"`` yields one bucket per calendar day of ``year``/``month``;
    ``period="year"`` yields twelve. Empty buckets are 0, never missing.
    """

    if period == "month":
        if month is None:
            raise ValueError("month is required when period='month'")
        size = calendar.monthrange(year, month)[1]
    elif period == "year":
        size = 12
    else:
        raise ValueError(f"Unknown period: {period!r}")

    income = [0.0] * size
    expense = [0.0] * size
    for tx in transactions:
        if tx.date.year != year:
            continue
        if period == "month":
            if tx.date.month != month:
                continue
            index = tx.date.day - 1
        else:
            index = tx.date.month - 1
        if tx.type is TransactionType.INCOME:
            income[index] += tx.amount
        elif tx.type is TransactionType.EXPENSE:
            expense[index] += tx.amount

    return TrendSeries(
        labels=list(range(1, size + 1)),
        income=[round(v, 2) for v in income],
        expense=[round(v, 2) for v in expense],
    )


def _shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def monthly_totals(
    transactions: Iterable[Transaction],
    *,
    year: int,
    month: int,
    months: int = 6,
    txn_type: TransactionType = TransactionType.EXPENSE,
) -> list[float]:
    """Totals for the ``months`` months ending at ``year``/``month``, oldest first."""

    keys = [_shift_month(year, month, offset) for offset in range(-(months - 1), 1)]
    totals = {key: 0.0 for key in keys}
    for tx in transactions:
        if tx.type is not txn_type:
            continue
        key = (tx.date.year, tx.date.month)
        if key in totals:
            totals[key] += tx.amount
    return [round(totals[key], 2) for key in keys]


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def project_trend(values: Sequence[float], horizon: int = 3) -> list[int]:
    """Least-squares line over ``values`` extended ``horizon`` steps ahead.

    x runs 0..n-1 over the history and n..n+horizon-1 for the projection.
    Results are rounded and floored at zero. With fewer than two points the
    projection repeats the single value (or 0).
    """

    n = len(values)
    if n == 0:
        return [0] * horizon
    if n < 2:
        return [max(0, _round_half_up(values[0]))] * horizon

    mean_x = (n - 1) / 2
    mean_y = sum(values) / n
    sxx = sum((x - mean_x) ** 2 for x in range(n))
    sxy = sum((x - mean_x) * (y - mean_y) for x, y in enumerate(values))
    slope = sxy / sxx
    intercept = mean_y - slope * mean_x
    return [max(0, _round_half_up(slope * x + intercept)) for x in range(n, n + horizon)]


@dataclass(slots=True)
class Prediction:
    history_income: list[float]
    history_expense: list[float]
    income: list[int]
    expense: list[int]


def predict_next_months(
    transactions: Sequence[Transaction],
    *,
    today: date,
    history: int = 6,
    horizon: int = 3,
) -> Prediction:
    """Project income and expense independently from the last ``history`` months."""

    income_hist = monthly_totals(
        transactions, year=today.year, month=today.month, months=history, txn_type=TransactionType.INCOME
    )
    expense_hist = monthly_totals(
        transactions, year=today.year, month=today.month, months=history, txn_type=TransactionType.EXPENSE
    )
    return Prediction(
        history_income=income_hist,
        history_expense=expense_hist,
        income=project_trend(income_hist, horizon),
        expense=project_trend(expense_hist, horizon),
    )


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------


def consumption_percent(spent: float, budget: float) -> int:
    """``round(spent / budget * 100)``; a zero budget reads as 0%."""

    if budget <= 0:
        return 0
    return _round_half_up(spent / budget * 100)


@dataclass(slots=True)
class BudgetLine:
    category_id: str
    label: str
    budget: float
    spent: float

    @property
    def percent(self) -> int:
        return consumption_percent(self.spent, self.budget)

    @property
    def remaining(self) -> float:
        return round(self.budget - self.spent, 2)


@dataclass(slots=True)
class BudgetReport:
    lines: list[BudgetLine] = field(default_factory=list)

    @property
    def total_budget(self) -> float:
        return round(sum(line.budget for line in self.lines), 2)

    @property
    def total_spent(self) -> float:
        return round(sum(line.spent for line in self.lines), 2)

    @property
    def percent(self) -> int:
        return consumption_percent(self.total_spent, self.total_budget)


def budget_consumption(
    transactions: Iterable[Transaction],
    categories: Sequence[Category],
    *,
    year: int,
    month: int,
) -> BudgetReport:
    """Budget progress for one month. Categories without a budget are left out."""

    start, end = month_range(year, month)
    spent = {
        total.category_id: total.amount
        for total in category_totals(
            transactions, categories, txn_type=TransactionType.EXPENSE, start=start, end=end
        )
    }
    report = BudgetReport()
    for cat in categories:
        if cat.budget is None:
            continue
        report.lines.append(
            BudgetLine(
                category_id=cat.id,
                label=cat.label,
                budget=cat.budget,
                spent=spent.get(cat.id, 0.0),
            )
        )
    return report


__all__ = [
    "BalanceDrift",
    "BudgetLine",
    "BudgetReport",
    "CategoryTotal",
    "Prediction",
    "TrendSeries",
    "account_balance",
    "balances",
    "bucket_series",
    "budget_consumption",
    "category_totals",
    "compute_summary",
    "consumption_percent",
    "detect_drift",
    "in_range",
    "month_range",
    "monthly_totals",
    "predict_next_months",
    "project_trend",
    "reversal_effects",
    "top_categories",
    "total_assets",
    "transaction_effect",
    "transaction_effects",
]
