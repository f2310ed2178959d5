"""SQLModel implementation of the namespaced state repository."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import select

from ...models.stored_state import StoredState
from ..database import SessionFactory


class SQLModelStateRepository:
    """SQLModel-based key-value repository, one row per (namespace, key)."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def get(self, namespace: str, key: str) -> Optional[str]:
        with self.session_factory() as session:
            row = session.get(StoredState, (namespace, key))
            return row.payload if row else None

    def set(self, namespace: str, key: str, payload: str) -> None:
        with self.session_factory() as session:
            row = session.get(StoredState, (namespace, key))
            if row:
                row.payload = payload
                row.updated_at = datetime.now(timezone.utc)
            else:
                row = StoredState(namespace=namespace, key=key, payload=payload)
            session.add(row)
            session.commit()

    def delete(self, namespace: str, key: str) -> None:
        with self.session_factory() as session:
            row = session.get(StoredState, (namespace, key))
            if row:
                session.delete(row)
                session.commit()

    def keys(self, namespace: str) -> list[str]:
        with self.session_factory() as session:
            statement = (
                select(StoredState.key)
                .where(StoredState.namespace == namespace)
                .order_by(StoredState.key)  # type: ignore[arg-type]
            )
            return list(session.exec(statement).all())


__all__ = ["SQLModelStateRepository"]
