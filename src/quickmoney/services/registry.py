"""Category and account registry helpers.

Lookups return ``None`` for unknown ids and removals never cascade: a
transaction may keep pointing at a category or account that no longer exists.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Mapping, Optional, TypeVar

from pydantic import BaseModel

from ..constants.defaults import UNKNOWN_LABEL
from ..models import Account, Category, CategoryType, LedgerState

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def new_registry_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def normalize_patch(model: type[BaseModel], patch: Mapping[str, Any]) -> dict[str, Any]:
    """Map camelCase or snake_case patch keys onto field names."""

    by_alias = {info.alias: name for name, info in model.model_fields.items() if info.alias}
    normalized: dict[str, Any] = {}
    for key, value in patch.items():
        name = key if key in model.model_fields else by_alias.get(key)
        if name is None:
            raise ValueError(f"Unknown field for {model.__name__}: {key}")
        normalized[name] = value
    return normalized


def apply_patch(record: ModelT, patch: Mapping[str, Any]) -> ModelT:
    """Return a validated copy of ``record`` with ``patch`` applied; ``id`` is fixed."""

    data = record.model_dump()
    data.update(normalize_patch(type(record), patch))
    data["id"] = getattr(record, "id")
    return type(record).model_validate(data)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


def get_category(state: LedgerState, category_id: str) -> Optional[Category]:
    return next((cat for cat in state.categories if cat.id == category_id), None)


def list_categories(state: LedgerState, category_type: CategoryType | None = None) -> list[Category]:
    if category_type is None:
        return list(state.categories)
    return [cat for cat in state.categories if cat.type is category_type]


def add_category(state: LedgerState, category: Category) -> Category:
    if get_category(state, category.id) is not None:
        raise ValueError(f"Category id already exists: {category.id}")
    state.categories = [*state.categories, category]
    logger.info("Category added", extra={"category_id": category.id})
    return category


def update_category(state: LedgerState, category_id: str, patch: Mapping[str, Any]) -> Category:
    current = get_category(state, category_id)
    if current is None:
        raise KeyError(category_id)
    updated = apply_patch(current, patch)
    state.categories = [updated if cat.id == category_id else cat for cat in state.categories]
    return updated


def remove_category(state: LedgerState, category_id: str) -> Optional[Category]:
    """Drop a category; referencing transactions keep the dangling id."""

    removed = get_category(state, category_id)
    if removed is not None:
        state.categories = [cat for cat in state.categories if cat.id != category_id]
        logger.info("Category removed", extra={"category_id": category_id})
    return removed


def category_label(state: LedgerState, category_id: str) -> str:
    cat = get_category(state, category_id)
    return cat.label if cat else UNKNOWN_LABEL


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


def get_account(state: LedgerState, account_id: str) -> Optional[Account]:
    return next((acc for acc in state.accounts if acc.id == account_id), None)


def list_accounts(state: LedgerState) -> list[Account]:
    return list(state.accounts)


def add_account(state: LedgerState, account: Account) -> Account:
    """Register an account; its current balance becomes the opening balance."""

    if get_account(state, account.id) is not None:
        raise ValueError(f"Account id already exists: {account.id}")
    if account.initial_balance is None:
        account = account.model_copy(update={"initial_balance": account.balance})
    state.accounts = [*state.accounts, account]
    logger.info("Account added", extra={"account_id": account.id, "balance": account.balance})
    return account


def update_account(state: LedgerState, account_id: str, patch: Mapping[str, Any]) -> Account:
    """Edit account details.

    A manual balance correction shifts the opening balance by the same amount
    so the account stays consistent with the transaction log.
    """

    current = get_account(state, account_id)
    if current is None:
        raise KeyError(account_id)
    updated = apply_patch(current, patch)
    if updated.balance != current.balance and current.initial_balance is not None:
        correction = updated.balance - current.balance
        updated = updated.model_copy(
            update={"initial_balance": round(current.initial_balance + correction, 2)}
        )
        logger.info(
            "Account balance corrected",
            extra={"account_id": account_id, "correction": round(correction, 2)},
        )
    state.accounts = [updated if acc.id == account_id else acc for acc in state.accounts]
    return updated


def remove_account(state: LedgerState, account_id: str) -> Optional[Account]:
    """Drop an account; its transactions stay in the log untouched."""

    removed = get_account(state, account_id)
    if removed is not None:
        state.accounts = [acc for acc in state.accounts if acc.id != account_id]
        logger.info("Account removed", extra={"account_id": account_id})
    return removed


def account_name(state: LedgerState, account_id: Optional[str]) -> str:
    acc = get_account(state, account_id) if account_id else None
    return acc.name if acc else UNKNOWN_LABEL


__all__ = [
    "account_name",
    "add_account",
    "add_category",
    "apply_patch",
    "category_label",
    "get_account",
    "get_category",
    "list_accounts",
    "list_categories",
    "new_registry_id",
    "normalize_patch",
    "remove_account",
    "remove_category",
    "update_account",
    "update_category",
]
