"""Service module exports."""

from . import (
    backup,
    export_csv,
    ledger_service,
    persistence,
    recurring,
    registry,
    transaction_log,
)

__all__ = [
    "backup",
    "export_csv",
    "ledger_service",
    "persistence",
    "recurring",
    "registry",
    "transaction_log",
]
