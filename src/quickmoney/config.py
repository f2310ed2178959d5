"""Environment-driven settings for the ledger, its database and backups."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Treat 1/true/yes/on (any case) as true."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


class BaseConfig:
    """Settings read from ``QUICKMONEY_*`` variables (and ``.env``) at construction."""

    APP_NAME = "QuickMoney"
    DB_FILENAME = "quickmoney.db"
    BACKUP_PREFIX = "quick-money-backup"
    BACKUP_VERSION = 1
    SQLITE_PRAGMAS = {"journal_mode": "wal"}

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("QUICKMONEY_DEV_MODE", default=True)
        self.DATABASE_URL = os.getenv("QUICKMONEY_DATABASE_URL", self._build_sqlite_url())
        self.USER_NAMESPACE = os.getenv("QUICKMONEY_USER", "local").strip() or "local"
        self.DOWNLOADS_DIR = self._resolve_downloads_dir()
        self.BACKUP_RETENTION = _env_int("QUICKMONEY_BACKUP_RETENTION", 30)
        self.AUTO_BACKUP = _env_bool("QUICKMONEY_AUTO_BACKUP", default=False)
        self.AUTO_BACKUP_HOUR = _env_int("QUICKMONEY_AUTO_BACKUP_HOUR", 3)
        if not 0 <= self.AUTO_BACKUP_HOUR <= 23:
            raise ValueError("QUICKMONEY_AUTO_BACKUP_HOUR must be between 0 and 23.")
        if self.BACKUP_RETENTION < 0:
            raise ValueError("QUICKMONEY_BACKUP_RETENTION cannot be negative.")

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("QUICKMONEY_DATA_DIR", "instance")
        base_path = Path(data_root).expanduser()
        try:
            path = base_path.resolve()
            path.mkdir(parents=True, exist_ok=True)
            return path
        except PermissionError:
            # Protected install locations fall back to user-local storage.
            fallback_path = Path.home() / f".{self.APP_NAME.lower()}"
            fallback_path.mkdir(parents=True, exist_ok=True)
            return fallback_path.resolve()

    def _resolve_downloads_dir(self) -> Path:
        """Directory used when backups fall back to a plain file download."""

        raw = os.getenv("QUICKMONEY_DOWNLOADS_DIR")
        if raw:
            return Path(raw).expanduser().resolve()
        return self.DATA_DIR / "downloads"

    def _build_sqlite_url(self) -> str:
        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Keyword arguments for ``create_engine``."""

        connect_args: dict[str, Any] = {"check_same_thread": False}
        return {"connect_args": connect_args}


class DevConfig(BaseConfig):
    """Local development: verbose console logging regardless of the environment."""

    def __init__(self) -> None:
        super().__init__()
        self.DEV_MODE = True


class TestConfig(BaseConfig):
    """Configuration used by the test suite; never enables auto backup."""

    __test__ = False

    def __init__(self) -> None:
        super().__init__()
        self.AUTO_BACKUP = False
