"""Backup and restore of the full ledger state as JSON snapshots.

Two modes share one file format:

* folder mode: a user-picked folder is remembered across sessions and its
  access is re-checked before every read or write;
* fallback mode: used when no folder picker exists in this runtime; a backup
  is written as a plain download and a restore reads any user-supplied file.

Restore always replaces whole collections and only after a successful parse
and an explicit confirmation.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import IO, Callable, Optional, Protocol, Union

from pydantic import ValidationError

from ..config import BaseConfig
from ..domain.repositories import StateRepository
from ..errors import (
    BackupCancelled,
    BackupError,
    BackupErrorCode,
    RestoreNotConfirmed,
    SnapshotFormatError,
)
from ..models import BackupSnapshot, LedgerState
from .persistence import LedgerStore

logger = logging.getLogger(__name__)

FOLDER_KEY = "backup_folder"
SNAPSHOT_COLLECTIONS = ("transactions", "categories", "accounts", "recurringTemplates")

BackupSource = Union[str, Path, IO[str], IO[bytes]]


# ---------------------------------------------------------------------------
# Snapshot format
# ---------------------------------------------------------------------------


def backup_filename(now: datetime, prefix: str = BaseConfig.BACKUP_PREFIX) -> str:
    """``<prefix>-YYYYMMDD-HHmm.json``; lexical order equals chronological order."""

    return f"{prefix}-{now.strftime('%Y%m%d-%H%M')}.json"


def is_backup_filename(name: str, prefix: str = BaseConfig.BACKUP_PREFIX) -> bool:
    return name.startswith(f"{prefix}-") and name.endswith(".json")


_STAMP_RE = re.compile(r"-(\d{8})-(\d{4})\.json$")
_STAMPED_TAIL_RE = re.compile(r"\d{8}-\d{4}\.json")


def is_timestamped_backup(name: str, prefix: str = BaseConfig.BACKUP_PREFIX) -> bool:
    """True only for names in the exact shape :func:`backup_filename` produces."""

    head = f"{prefix}-"
    return name.startswith(head) and _STAMPED_TAIL_RE.fullmatch(name[len(head):]) is not None


def backup_timestamp(name: str) -> Optional[datetime]:
    """Parse the timestamp embedded in a backup filename, if any."""

    match = _STAMP_RE.search(name)
    if not match:
        return None
    try:
        return datetime.strptime(match.group(1) + match.group(2), "%Y%m%d%H%M")
    except ValueError:
        return None


def _iso_utc(now: datetime) -> str:
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def build_snapshot(
    state: LedgerState, *, now: Optional[datetime] = None, version: int = BaseConfig.BACKUP_VERSION
) -> BackupSnapshot:
    """Capture every collection of ``state`` into a snapshot value."""

    now = now or datetime.now()
    copy = state.copy()
    return BackupSnapshot(
        version=version,
        exported_at=_iso_utc(now),
        transactions=copy.transactions,
        categories=copy.categories,
        accounts=copy.accounts,
        recurring_templates=copy.recurring_templates,
    )


def snapshot_to_json(snapshot: BackupSnapshot) -> str:
    """Pretty-printed JSON shared by folder and download backups."""

    return json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False)


def parse_snapshot(data: Union[str, bytes]) -> BackupSnapshot:
    """Parse backup file contents or raise :class:`SnapshotFormatError`."""

    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise SnapshotFormatError("Backup file is not UTF-8 text") from exc
    data = data.lstrip("\ufeff")

    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        raise SnapshotFormatError(f"Backup file is not valid JSON: {exc.msg}") from exc

    if not isinstance(payload, dict):
        raise SnapshotFormatError("Backup file must contain a JSON object")
    if not any(key in payload for key in (*SNAPSHOT_COLLECTIONS, "recurring_templates")):
        raise SnapshotFormatError("Backup file contains no ledger collections")

    try:
        return BackupSnapshot.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors(include_url=False)[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise SnapshotFormatError(
            f"Backup file has an unexpected shape at {location or 'root'}: {first.get('msg')}"
        ) from exc


def restore_state(current: LedgerState, snapshot: BackupSnapshot, *, confirm: bool = False) -> LedgerState:
    """Return the state that results from restoring ``snapshot``.

    Collections present in the snapshot replace the current ones wholesale;
    collections missing from an older snapshot are kept as they are.
    """

    if not confirm:
        raise RestoreNotConfirmed("Restore requires explicit confirmation")

    restored = current.copy()
    for name, records in snapshot.collections().items():
        if records is None:
            continue
        setattr(restored, name, [record.model_copy(deep=True) for record in records])
    return restored


# ---------------------------------------------------------------------------
# Folder handles
# ---------------------------------------------------------------------------


class AccessResult(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNSUPPORTED = "unsupported"


class BackupMode(str, Enum):
    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    DEGRADED = "degraded"
    FALLBACK = "fallback"


class FolderHandle(Protocol):
    """A user-granted storage location that can be remembered across sessions."""

    @property
    def name(self) -> str:
        ...

    def token(self) -> str:
        """Serializable reference used to re-open the handle later."""
        ...

    def request_permission(self) -> bool:
        """Re-validate read/write access; may prompt the user."""
        ...

    def list_names(self) -> list[str]:
        ...

    def read_bytes(self, filename: str) -> bytes:
        ...

    def write_bytes(self, filename: str, data: bytes) -> None:
        ...

    def remove(self, filename: str) -> None:
        ...


class LocalFolderHandle:
    """Folder handle backed by a directory on the local filesystem."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    @classmethod
    def from_token(cls, token: str) -> "LocalFolderHandle":
        return cls(token)

    @property
    def name(self) -> str:
        return self.path.name

    def token(self) -> str:
        return str(self.path)

    def request_permission(self) -> bool:
        return self.path.is_dir() and os.access(self.path, os.R_OK | os.W_OK | os.X_OK)

    def list_names(self) -> list[str]:
        return [entry.name for entry in self.path.iterdir() if entry.is_file()]

    def read_bytes(self, filename: str) -> bytes:
        return (self.path / filename).read_bytes()

    def write_bytes(self, filename: str, data: bytes) -> None:
        # Write-then-rename so an interrupted write never leaves a torn backup.
        target = self.path / filename
        partial = self.path / f".{filename}.partial"
        partial.write_bytes(data)
        os.replace(partial, target)

    def remove(self, filename: str) -> None:
        (self.path / filename).unlink(missing_ok=True)


FolderPicker = Callable[[], Optional[FolderHandle]]
HandleLoader = Callable[[str], FolderHandle]


# ---------------------------------------------------------------------------
# Manager (raises)
# ---------------------------------------------------------------------------


class BackupManager:
    """Folder and fallback backup operations; failures raise typed errors.

    ``picker`` is the runtime's folder-picker capability. ``None`` means the
    capability is absent and only fallback mode is available.
    """

    def __init__(
        self,
        repo: StateRepository,
        namespace: str,
        *,
        downloads_dir: Path,
        picker: Optional[FolderPicker] = None,
        handle_loader: HandleLoader = LocalFolderHandle.from_token,
        prefix: str = BaseConfig.BACKUP_PREFIX,
        version: int = BaseConfig.BACKUP_VERSION,
        retention: int = 0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repo = repo
        self.namespace = namespace
        self.downloads_dir = Path(downloads_dir)
        self.picker = picker
        self.handle_loader = handle_loader
        self.prefix = prefix
        self.version = version
        self.retention = retention
        self.clock = clock
        self._degraded = False

    @property
    def folder_supported(self) -> bool:
        return self.picker is not None

    @property
    def mode(self) -> BackupMode:
        if not self.folder_supported:
            return BackupMode.FALLBACK
        if self.repo.get(self.namespace, FOLDER_KEY) is None:
            return BackupMode.UNCONFIGURED
        return BackupMode.DEGRADED if self._degraded else BackupMode.CONFIGURED

    # folder configuration -------------------------------------------------

    def _saved_handle(self) -> Optional[FolderHandle]:
        token = self.repo.get(self.namespace, FOLDER_KEY)
        return self.handle_loader(token) if token else None

    def saved_folder_name(self) -> Optional[str]:
        """Name of the remembered folder; does not check access."""

        handle = self._saved_handle()
        return handle.name if handle else None

    def pick_folder(self) -> str:
        """Ask the user for a folder and remember it. Returns the folder name."""

        if self.picker is None:
            raise BackupError(BackupErrorCode.NOT_SUPPORTED)
        handle = self.picker()
        if handle is None:
            raise BackupCancelled("Folder selection cancelled")
        self.repo.set(self.namespace, FOLDER_KEY, handle.token())
        self._degraded = False
        logger.info("Backup folder configured", extra={"folder": handle.name})
        return handle.name

    def clear_folder(self) -> None:
        self.repo.delete(self.namespace, FOLDER_KEY)
        self._degraded = False

    def ensure_access(self) -> AccessResult:
        """Re-validate access to the remembered folder.

        Raises ``BackupError(NO_FOLDER)`` when no folder was ever chosen.
        """

        if not self.folder_supported:
            return AccessResult.UNSUPPORTED
        handle = self._saved_handle()
        if handle is None:
            raise BackupError(BackupErrorCode.NO_FOLDER)
        try:
            granted = handle.request_permission()
        except OSError as exc:
            logger.warning("Permission check failed", extra={"folder": handle.name, "error": str(exc)})
            granted = False
        self._degraded = not granted
        return AccessResult.GRANTED if granted else AccessResult.DENIED

    def _require_handle(self) -> FolderHandle:
        result = self.ensure_access()
        if result is AccessResult.UNSUPPORTED:
            raise BackupError(BackupErrorCode.NOT_SUPPORTED)
        if result is AccessResult.DENIED:
            raise BackupError(BackupErrorCode.PERMISSION_DENIED)
        handle = self._saved_handle()
        if handle is None:
            raise BackupError(BackupErrorCode.NO_FOLDER)
        return handle

    # folder mode ------------------------------------------------------------

    def _serialize(self, state: LedgerState, now: datetime) -> bytes:
        snapshot = build_snapshot(state, now=now, version=self.version)
        return snapshot_to_json(snapshot).encode("utf-8")

    def backup_to_folder(self, state: LedgerState) -> str:
        """Write a snapshot into the configured folder. Returns the filename."""

        handle = self._require_handle()
        now = self.clock()
        filename = backup_filename(now, self.prefix)
        handle.write_bytes(filename, self._serialize(state, now))
        logger.info("Backup written", extra={"folder": handle.name, "backup_file": filename})
        if self.retention:
            self._prune(handle, self.retention)
        return filename

    def list_backups(self) -> list[str]:
        """Backup filenames in the configured folder, newest first."""

        handle = self._require_handle()
        names = [name for name in handle.list_names() if is_backup_filename(name, self.prefix)]
        return sorted(names, reverse=True)

    def read_backup(self, filename: str) -> BackupSnapshot:
        handle = self._require_handle()
        return parse_snapshot(handle.read_bytes(filename))

    def _prune(self, handle: FolderHandle, keep: int) -> None:
        names = sorted(
            (name for name in handle.list_names() if is_timestamped_backup(name, self.prefix)),
            reverse=True,
        )
        for old in names[keep:]:
            try:
                handle.remove(old)
            except OSError as exc:
                logger.warning("Could not prune old backup", extra={"backup_file": old, "error": str(exc)})
            else:
                logger.info("Pruned old backup", extra={"backup_file": old})

    # fallback mode ----------------------------------------------------------

    def download_fallback(self, state: LedgerState) -> Path:
        """Write the snapshot as a standalone download file."""

        now = self.clock()
        self.downloads_dir.mkdir(parents=True, exist_ok=True)
        path = self.downloads_dir / backup_filename(now, self.prefix)
        path.write_bytes(self._serialize(state, now))
        logger.info("Backup downloaded", extra={"path": str(path)})
        return path

    def read_file(self, source: Optional[BackupSource]) -> BackupSnapshot:
        """Parse a user-supplied file (path or open file object)."""

        if source is None:
            raise BackupCancelled("File selection cancelled")
        if isinstance(source, (str, Path)):
            data: Union[str, bytes] = Path(source).read_bytes()
        else:
            data = source.read()
        return parse_snapshot(data)


# ---------------------------------------------------------------------------
# Service (boundary, returns statuses)
# ---------------------------------------------------------------------------


class StatusKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True, slots=True)
class BackupStatus:
    """User-facing outcome of a backup/restore action."""

    kind: StatusKind
    message: str
    code: Optional[str] = None
    filename: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind is StatusKind.SUCCESS


PARSE_ERROR = "PARSE_ERROR"
IO_ERROR = "IO_ERROR"

_ERROR_MESSAGES = {
    BackupErrorCode.NOT_SUPPORTED: "Folder backups are not supported here; use a file backup instead.",
    BackupErrorCode.NO_FOLDER: "Choose a backup folder first.",
    BackupErrorCode.PERMISSION_DENIED: "Access to the backup folder was revoked. Choose the folder again.",
}

ConfirmRestore = Callable[[BackupSnapshot], bool]


class BackupService:
    """Backup/restore entry points for the presentation layer.

    Every failure is turned into a :class:`BackupStatus`; a dismissed picker
    is reported as ``info`` rather than an error.
    """

    def __init__(self, manager: BackupManager, store: LedgerStore):
        self.manager = manager
        self.store = store

    @property
    def mode(self) -> BackupMode:
        return self.manager.mode

    def _failure(self, action: str, exc: Exception) -> BackupStatus:
        if isinstance(exc, BackupCancelled):
            return BackupStatus(StatusKind.INFO, "Cancelled.")
        if isinstance(exc, RestoreNotConfirmed):
            return BackupStatus(StatusKind.INFO, "Restore was not confirmed; nothing changed.")
        if isinstance(exc, BackupError):
            logger.warning("%s failed", action, extra={"code": exc.code.value})
            return BackupStatus(StatusKind.ERROR, _ERROR_MESSAGES[exc.code], code=exc.code.value)
        if isinstance(exc, SnapshotFormatError):
            logger.warning("%s failed: %s", action, exc)
            return BackupStatus(StatusKind.ERROR, f"Could not read backup: {exc}", code=PARSE_ERROR)
        logger.error("%s failed", action, exc_info=exc)
        return BackupStatus(StatusKind.ERROR, f"{action} failed: {exc}", code=IO_ERROR)

    def choose_folder(self) -> BackupStatus:
        try:
            name = self.manager.pick_folder()
        except (BackupError, BackupCancelled) as exc:
            return self._failure("Folder selection", exc)
        return BackupStatus(StatusKind.SUCCESS, f"Backups will be saved to {name}.")

    def backup(self) -> BackupStatus:
        """Back up to the folder, or download when folders are unsupported."""

        try:
            if not self.manager.folder_supported:
                path = self.manager.download_fallback(self.store.snapshot())
                return BackupStatus(StatusKind.SUCCESS, f"Backup downloaded as {path.name}.", filename=path.name)
            filename = self.manager.backup_to_folder(self.store.snapshot())
        except (BackupError, OSError) as exc:
            return self._failure("Backup", exc)
        return BackupStatus(StatusKind.SUCCESS, f"Backup saved as {filename}.", filename=filename)

    def list_backups(self) -> tuple[BackupStatus, list[str]]:
        try:
            names = self.manager.list_backups()
        except (BackupError, OSError) as exc:
            return self._failure("Listing backups", exc), []
        if not names:
            return BackupStatus(StatusKind.INFO, "No backups found in the folder."), []
        return BackupStatus(StatusKind.SUCCESS, f"{len(names)} backup(s) found."), names

    def restore_from_folder(self, filename: str, confirm: ConfirmRestore) -> BackupStatus:
        try:
            snapshot = self.manager.read_backup(filename)
            return self._restore(snapshot, confirm, filename)
        except (BackupError, SnapshotFormatError, RestoreNotConfirmed, OSError) as exc:
            return self._failure("Restore", exc)

    def restore_from_file(self, source: Optional[BackupSource], confirm: ConfirmRestore) -> BackupStatus:
        try:
            snapshot = self.manager.read_file(source)
            name = source if isinstance(source, (str, Path)) else getattr(source, "name", "selected file")
            return self._restore(snapshot, confirm, Path(str(name)).name)
        except (BackupCancelled, SnapshotFormatError, RestoreNotConfirmed, OSError) as exc:
            return self._failure("Restore", exc)

    def _restore(self, snapshot: BackupSnapshot, confirm: ConfirmRestore, filename: str) -> BackupStatus:
        approved = bool(confirm(snapshot))
        with self.store.lock:
            restored = restore_state(self.store.state, snapshot, confirm=approved)
            self.store.replace(restored)
        logger.info(
            "Backup restored",
            extra={"backup_file": filename, "version": snapshot.version, "exported_at": snapshot.exported_at},
        )
        return BackupStatus(StatusKind.SUCCESS, f"Restored from {filename}.", filename=filename)


__all__ = [
    "AccessResult",
    "BackupManager",
    "BackupMode",
    "BackupService",
    "BackupStatus",
    "FolderHandle",
    "LocalFolderHandle",
    "StatusKind",
    "backup_filename",
    "backup_timestamp",
    "build_snapshot",
    "is_backup_filename",
    "is_timestamped_backup",
    "parse_snapshot",
    "restore_state",
    "snapshot_to_json",
]
