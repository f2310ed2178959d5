"""Key-value table backing the persistence adapter."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import ClassVar

from sqlmodel import Field, SQLModel


class StoredState(SQLModel, table=True):
    """One JSON payload per (user namespace, key)."""

    __tablename__: ClassVar[str] = "stored_state"

    namespace: str = Field(primary_key=True, max_length=64)
    key: str = Field(primary_key=True, max_length=64)
    payload: str = Field(nullable=False)
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
