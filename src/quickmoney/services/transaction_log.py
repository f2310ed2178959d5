"""Transaction log CRUD that keeps materialized account balances consistent.

Every write path applies balance effects incrementally:

* create applies the forward effect once;
* edit reverses the original effect on the original account(s) and then
  applies the new effect on the new account(s), even when nothing but the
  amount changed;
* delete reverses the effect and removes the record.

All deltas for one mutation are computed before any account is replaced, so
a transfer never shows up half-applied. Effects aimed at an account that no
longer exists are skipped with a warning.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from ..errors import TransactionNotFound, TransferRejected
from ..models import LedgerState, Transaction, TransactionType
from .ledger_service import Effect, in_range, reversal_effects, transaction_effects
from .registry import apply_patch, get_account, normalize_patch

logger = logging.getLogger(__name__)


@dataclass
class TransactionFilter:
    """Filters applied to transaction listings."""

    account_id: Optional[str] = None
    category_id: Optional[str] = None
    txn_type: Optional[TransactionType] = None
    start: Optional[date] = None
    end: Optional[date] = None
    text: Optional[str] = None

    def matches(self, tx: Transaction) -> bool:
        if self.account_id and self.account_id not in (tx.account_id, tx.to_account_id):
            return False
        if self.category_id and tx.category_id != self.category_id:
            return False
        if self.txn_type is not None and tx.type is not self.txn_type:
            return False
        if not in_range(tx, self.start, self.end):
            return False
        if self.text and self.text.lower() not in (tx.note or "").lower():
            return False
        return True


def _new_id(state: LedgerState) -> int:
    """Current epoch milliseconds, bumped past any id already in the log."""

    candidate = time.time_ns() // 1_000_000
    taken = {tx.id for tx in state.transactions}
    while candidate in taken:
        candidate += 1
    return candidate


def _validate_transfer(state: LedgerState, tx: Transaction, *, check_accounts: bool = True) -> None:
    """Reject a transfer unless both legs can be applied.

    ``check_accounts=False`` is used for edits that keep the legs of an
    existing transfer, whose accounts may since have been deleted.
    """

    if tx.type is not TransactionType.TRANSFER:
        return
    if not tx.to_account_id:
        raise TransferRejected("Transfer requires a destination account")
    if tx.to_account_id == tx.account_id:
        raise TransferRejected("Transfer source and destination must differ")
    if not check_accounts:
        return
    for account_id in (tx.account_id, tx.to_account_id):
        if get_account(state, account_id) is None:
            raise TransferRejected(f"Transfer account does not exist: {account_id}")


def _legs_changed(original: Transaction, updated: Transaction) -> bool:
    return (original.type, original.account_id, original.to_account_id) != (
        updated.type,
        updated.account_id,
        updated.to_account_id,
    )


def _apply_effects(state: LedgerState, effects: Iterable[Effect]) -> None:
    """Apply all deltas to the account registry in one swap."""

    index = {acc.id: position for position, acc in enumerate(state.accounts)}
    pending: dict[int, float] = {}
    for account_id, delta in effects:
        position = index.get(account_id)
        if position is None:
            logger.warning(
                "Skipping balance effect for missing account",
                extra={"account_id": account_id, "delta": delta},
            )
            continue
        pending[position] = pending.get(position, 0.0) + delta

    if not pending:
        return
    accounts = list(state.accounts)
    for position, delta in pending.items():
        acc = accounts[position]
        accounts[position] = acc.model_copy(update={"balance": round(acc.balance + delta, 2)})
    state.accounts = accounts


def get(state: LedgerState, transaction_id: int) -> Optional[Transaction]:
    return next((tx for tx in state.transactions if tx.id == transaction_id), None)


def list_transactions(
    state: LedgerState, filters: Optional[TransactionFilter] = None
) -> list[Transaction]:
    """Newest first by ledger date, then creation instant."""

    txs = [tx for tx in state.transactions if filters is None or filters.matches(tx)]
    return sorted(txs, key=lambda tx: (tx.date, tx.id or 0), reverse=True)


def add(state: LedgerState, tx: Transaction) -> Transaction:
    """Append ``tx`` and apply its balance effect."""

    _validate_transfer(state, tx)
    if tx.id is None:
        tx = tx.model_copy(update={"id": _new_id(state)})
    elif get(state, tx.id) is not None:
        raise ValueError(f"Transaction id already exists: {tx.id}")

    _apply_effects(state, transaction_effects(tx))
    state.transactions = [*state.transactions, tx]
    logger.info(
        "Transaction added",
        extra={"transaction_id": tx.id, "type": tx.type.value, "amount": tx.amount},
    )
    return tx


def update(state: LedgerState, transaction_id: int, patch: Mapping[str, Any]) -> Transaction:
    """Replace fields of a logged transaction, moving its balance effect."""

    original = get(state, transaction_id)
    if original is None:
        raise TransactionNotFound(transaction_id)

    changes = normalize_patch(Transaction, patch)
    if changes.get("type", original.type) != TransactionType.TRANSFER:
        # Leaving the transfer type drops the transfer-only fields.
        changes.setdefault("to_account_id", None)
        changes.setdefault("fee", None)
    updated = apply_patch(original, changes)
    _validate_transfer(state, updated, check_accounts=_legs_changed(original, updated))

    _apply_effects(state, [*reversal_effects(original), *transaction_effects(updated)])
    state.transactions = [updated if tx.id == transaction_id else tx for tx in state.transactions]
    logger.info(
        "Transaction updated",
        extra={
            "transaction_id": transaction_id,
            "old_type": original.type.value,
            "new_type": updated.type.value,
            "old_amount": original.amount,
            "new_amount": updated.amount,
        },
    )
    return updated


def remove(state: LedgerState, transaction_id: int) -> Transaction:
    """Reverse the balance effect of a transaction and drop it from the log."""

    original = get(state, transaction_id)
    if original is None:
        raise TransactionNotFound(transaction_id)

    _apply_effects(state, reversal_effects(original))
    state.transactions = [tx for tx in state.transactions if tx.id != transaction_id]
    logger.info("Transaction removed", extra={"transaction_id": transaction_id})
    return original


__all__ = [
    "TransactionFilter",
    "add",
    "get",
    "list_transactions",
    "remove",
    "update",
]
