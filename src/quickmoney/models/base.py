"""Shared pydantic base for ledger records."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class LedgerModel(BaseModel):
    """Record stored in the ledger state and written to backups.

    Field names are snake_case in Python and camelCase on the wire
    (``categoryId``, ``lastGenerated`` ...), matching the backup file format.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        allow_inf_nan=False,
    )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict using wire (camelCase) keys."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
