"""Recurring template scheduler.

Runs once per application load, before anything reads the ledger. A due
template produces exactly one transaction per run no matter how many periods
were missed; missed periods are not backfilled.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Mapping, Optional

from ..constants.defaults import AUTO_NOTE_PREFIX
from ..errors import QuickMoneyError
from ..models import Frequency, LedgerState, RecurringTemplate, Transaction
from . import transaction_log
from .registry import apply_patch

logger = logging.getLogger(__name__)


def is_due(template: RecurringTemplate, today: date) -> bool:
    """Whether ``template`` should fire on ``today``.

    Daily fires on any later date, weekly once seven whole days have passed,
    monthly whenever the calendar month (or year) differs.
    """

    if not template.active:
        return False
    last = template.last_generated
    if template.frequency is Frequency.DAILY:
        return today > last
    if template.frequency is Frequency.WEEKLY:
        return (today - last).days >= 7
    return today.month != last.month or today.year != last.year


def materialize(template: RecurringTemplate, today: date, now: datetime) -> Transaction:
    """Build the transaction a template emits for ``today``."""

    return Transaction(
        amount=template.amount,
        type=template.type,
        category_id=template.category_id,
        account_id=template.account_id,
        to_account_id=template.to_account_id,
        date=today,
        time=now.strftime("%H:%M"),
        note=f"{AUTO_NOTE_PREFIX}{template.label}",
    )


def run_recurring(
    state: LedgerState, today: Optional[date] = None, now: Optional[datetime] = None
) -> list[Transaction]:
    """Fire every due template once and advance its ``last_generated``.

    Generated transactions go through the transaction log so balances move
    with them. Running again on the same day is a no-op.
    """

    now = now or datetime.now()
    today = today or now.date()
    generated: list[Transaction] = []
    templates = list(state.recurring_templates)

    for position, template in enumerate(templates):
        if not is_due(template, today):
            continue
        try:
            tx = transaction_log.add(state, materialize(template, today, now))
        except (QuickMoneyError, ValueError) as exc:
            logger.warning(
                "Recurring template skipped: %s",
                exc,
                extra={"template_id": template.id},
            )
            continue
        templates[position] = template.model_copy(update={"last_generated": today})
        generated.append(tx)
        logger.info(
            "Recurring transaction generated",
            extra={
                "template_id": template.id,
                "frequency": template.frequency.value,
                "transaction_id": tx.id,
            },
        )

    state.recurring_templates = templates
    return generated


# ---------------------------------------------------------------------------
# Template maintenance
# ---------------------------------------------------------------------------


def get_template(state: LedgerState, template_id: str) -> Optional[RecurringTemplate]:
    return next((t for t in state.recurring_templates if t.id == template_id), None)


def add_template(state: LedgerState, template: RecurringTemplate) -> RecurringTemplate:
    if get_template(state, template.id) is not None:
        raise ValueError(f"Recurring template id already exists: {template.id}")
    state.recurring_templates = [*state.recurring_templates, template]
    return template


def update_template(
    state: LedgerState, template_id: str, patch: Mapping[str, Any]
) -> RecurringTemplate:
    current = get_template(state, template_id)
    if current is None:
        raise KeyError(template_id)
    updated = apply_patch(current, patch)
    state.recurring_templates = [
        updated if t.id == template_id else t for t in state.recurring_templates
    ]
    return updated


def set_active(state: LedgerState, template_id: str, active: bool) -> RecurringTemplate:
    return update_template(state, template_id, {"active": active})


def remove_template(state: LedgerState, template_id: str) -> Optional[RecurringTemplate]:
    removed = get_template(state, template_id)
    if removed is not None:
        state.recurring_templates = [t for t in state.recurring_templates if t.id != template_id]
    return removed


__all__ = [
    "add_template",
    "get_template",
    "is_due",
    "materialize",
    "remove_template",
    "run_recurring",
    "set_active",
    "update_template",
]
