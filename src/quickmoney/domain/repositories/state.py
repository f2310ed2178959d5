"""Namespaced key-value state repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol


class StateRepository(Protocol):
    """Stores one JSON payload per (namespace, key); last write wins."""

    def get(self, namespace: str, key: str) -> Optional[str]:
        """Return the raw payload or None when the key was never written."""
        ...

    def set(self, namespace: str, key: str, payload: str) -> None:
        """Create or overwrite the payload for a key."""
        ...

    def delete(self, namespace: str, key: str) -> None:
        """Remove a key; missing keys are ignored."""
        ...

    def keys(self, namespace: str) -> list[str]:
        """List keys stored for a namespace."""
        ...
