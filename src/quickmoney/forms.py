"""Input validation for the transaction entry form."""

from __future__ import annotations

import datetime as dt
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .models import Transaction, TransactionType


class TransactionForm(BaseModel):
    """The "current input" handed over by the entry screen.

    Amounts arrive as raw text from the keypad; anything that is not a finite
    positive number blocks the save.
    """

    model_config = ConfigDict(str_strip_whitespace=True, allow_inf_nan=False)

    amount: float
    type: TransactionType = TransactionType.EXPENSE
    category_id: str = ""
    account_id: str = Field(min_length=1)
    to_account_id: Optional[str] = None
    fee: Optional[float] = None
    date: dt.date = Field(default_factory=dt.date.today)
    time: Optional[str] = None
    note: str = Field(default="", max_length=500)

    @field_validator("amount", "fee", mode="before")
    @classmethod
    def parse_money(cls, value: Union[str, float, int, None]) -> Union[float, None]:
        """Accept keypad strings such as ``"1,200"`` or ``"12.50"``."""

        if value is None or value == "":
            return None
        if isinstance(value, str):
            cleaned = value.replace(",", "").replace("$", "").strip()
            try:
                return float(cleaned)
            except ValueError as exc:
                raise ValueError("Amount must be a number.") from exc
        return value

    @field_validator("amount")
    @classmethod
    def positive_amount(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Amount must be greater than zero.")
        return round(value, 2)

    @field_validator("fee")
    @classmethod
    def non_negative_fee(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value < 0:
            raise ValueError("Fee cannot be negative.")
        return value

    @model_validator(mode="after")
    def check_transfer(self) -> "TransactionForm":
        if self.type is TransactionType.TRANSFER:
            if not self.to_account_id:
                raise ValueError("Choose the account to transfer to.")
            if self.to_account_id == self.account_id:
                raise ValueError("Transfer accounts must be different.")
        return self

    def to_transaction(self, now: Optional[dt.datetime] = None) -> Transaction:
        now = now or dt.datetime.now()
        is_transfer = self.type is TransactionType.TRANSFER
        return Transaction(
            amount=self.amount,
            type=self.type,
            category_id=self.category_id,
            account_id=self.account_id,
            to_account_id=self.to_account_id if is_transfer else None,
            fee=(self.fee or None) if is_transfer else None,
            date=self.date,
            time=self.time or now.strftime("%H:%M"),
            note=self.note or None,
        )


def form_errors(payload: dict) -> dict[str, list[str]]:
    """Validate a raw payload and return errors grouped by field."""

    try:
        TransactionForm.model_validate(payload)
    except ValidationError as exc:
        structured: dict[str, list[str]] = {}
        for error in exc.errors(include_url=False):
            loc = error.get("loc", ())
            key = str(loc[0]) if loc else "__root__"
            structured.setdefault(key, []).append(error.get("msg", "Invalid value"))
        return structured
    return {}


__all__ = ["TransactionForm", "form_errors"]
