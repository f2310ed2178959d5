"""Exception types raised by the ledger and backup services."""

from __future__ import annotations

from enum import Enum


class QuickMoneyError(Exception):
    """Base class for all application errors."""


class TransactionNotFound(QuickMoneyError):
    """Raised when an update/remove targets an id that is not in the log."""

    def __init__(self, transaction_id: int):
        super().__init__(f"Transaction {transaction_id} not found")
        self.transaction_id = transaction_id


class TransferRejected(QuickMoneyError):
    """A transfer whose legs cannot both be applied; nothing was touched."""


class BackupErrorCode(str, Enum):
    """Failure conditions of the folder backup mode."""

    NOT_SUPPORTED = "NOT_SUPPORTED"
    NO_FOLDER = "NO_FOLDER"
    PERMISSION_DENIED = "PERMISSION_DENIED"


class BackupError(QuickMoneyError):
    """Folder backup/restore failure carrying a :class:`BackupErrorCode`."""

    def __init__(self, code: BackupErrorCode, message: str | None = None):
        super().__init__(message or code.value)
        self.code = code


class BackupCancelled(QuickMoneyError):
    """The user dismissed a folder or file picker. Not a failure."""


class SnapshotFormatError(QuickMoneyError):
    """A backup file is not valid JSON or does not look like a snapshot."""


class RestoreNotConfirmed(QuickMoneyError):
    """Restore was attempted without explicit user confirmation."""


__all__ = [
    "BackupCancelled",
    "BackupError",
    "BackupErrorCode",
    "QuickMoneyError",
    "RestoreNotConfirmed",
    "SnapshotFormatError",
    "TransactionNotFound",
    "TransferRejected",
]
