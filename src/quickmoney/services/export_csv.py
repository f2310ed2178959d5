"""CSV export helpers for QuickMoney."""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Iterable, Optional

from ..models import LedgerState, Transaction, TransactionType
from .registry import account_name, get_category

HEADERS = ["Date", "Time", "Type", "Category", "Account", "Amount", "Note", "Status"]


def _category_cell(state: LedgerState, tx: Transaction) -> str:
    cat = get_category(state, tx.category_id)
    if cat is not None:
        return cat.label
    if tx.type is TransactionType.TRANSFER:
        return tx.type_label
    return "unknown"


def _rows(state: LedgerState, transactions: Iterable[Transaction]) -> Iterable[list[str]]:
    for tx in transactions:
        yield [
            tx.date.isoformat(),
            tx.time,
            tx.type_label,
            _category_cell(state, tx),
            account_name(state, tx.account_id),
            f"{tx.amount:.2f}",
            tx.note or "",
            tx.status,
        ]


def render_transactions_csv(
    state: LedgerState, transactions: Optional[Iterable[Transaction]] = None
) -> str:
    """Return the CSV text (without BOM), one row per transaction.

    Every cell is quoted, so notes with commas, newlines or quotes (doubled)
    survive spreadsheet import.
    """

    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\r\n")
    writer.writerow(HEADERS)
    rows = state.transactions if transactions is None else transactions
    writer.writerows(_rows(state, rows))
    return buffer.getvalue()


def export_transactions_csv(
    *,
    state: LedgerState,
    output_path: Path,
    transactions: Optional[Iterable[Transaction]] = None,
) -> Path:
    """Write transactions to ``output_path`` as UTF-8 with a byte-order mark.

    Returns the path written.
    """

    output_path.parent.mkdir(parents=True, exist_ok=True)
    # utf-8-sig prepends the BOM spreadsheet apps use to detect UTF-8.
    with output_path.open("w", newline="", encoding="utf-8-sig") as fh:
        fh.write(render_transactions_csv(state, transactions))
    return output_path
