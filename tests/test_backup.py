"""Backup and restore tests for folder and fallback modes."""

from __future__ import annotations

import io
import json
import threading
from datetime import datetime
from pathlib import Path

import pytest

from quickmoney.errors import BackupCancelled, BackupError, BackupErrorCode, RestoreNotConfirmed, SnapshotFormatError
from quickmoney.models import Account
from quickmoney.services import backup, ledger_service, transaction_log
from quickmoney.services.backup import (
    AccessResult,
    BackupManager,
    BackupMode,
    BackupService,
    LocalFolderHandle,
    StatusKind,
)
from quickmoney.services.persistence import LedgerStore, save_state

FIXED_NOW = datetime(2026, 3, 15, 9, 5)


class FakeFolder:
    """In-memory folder handle whose permission can be revoked."""

    def __init__(self, name: str = "Backups"):
        self._name = name
        self.files: dict[str, bytes] = {}
        self.granted = True
        self.permission_checks = 0

    @property
    def name(self) -> str:
        return self._name

    def token(self) -> str:
        return self._name

    def request_permission(self) -> bool:
        self.permission_checks += 1
        return self.granted

    def list_names(self) -> list[str]:
        return list(self.files)

    def read_bytes(self, filename: str) -> bytes:
        return self.files[filename]

    def write_bytes(self, filename: str, data: bytes) -> None:
        if not self.granted:
            raise PermissionError(filename)
        self.files[filename] = data

    def remove(self, filename: str) -> None:
        self.files.pop(filename, None)


class Clock:
    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def store(state_repo, state, make_tx) -> LedgerStore:
    transaction_log.add(state, make_tx(100))
    transaction_log.add(state, make_tx(50, "transfer", to_account_id="Y", fee=5, note='Move "spare", cash'))
    save_state(state_repo, "tester", state)
    return LedgerStore(state_repo, "tester")


@pytest.fixture
def folder() -> FakeFolder:
    return FakeFolder()


@pytest.fixture
def clock() -> Clock:
    return Clock()


def _manager(state_repo, tmp_path, folder=None, *, supported=True, picked=True, clock=None, retention=0):
    return BackupManager(
        state_repo,
        "tester",
        downloads_dir=tmp_path / "downloads",
        picker=(lambda: folder if picked else None) if supported else None,
        handle_loader=lambda token: folder,
        retention=retention,
        clock=clock or Clock(),
    )


@pytest.fixture
def service(state_repo, tmp_path, folder, clock, store) -> BackupService:
    manager = _manager(state_repo, tmp_path, folder, clock=clock)
    return BackupService(manager, store)


def _confirm_yes(_snapshot):
    return True


class TestSnapshotFormat:
    def test_filename_format(self):
        assert backup.backup_filename(FIXED_NOW) == "quick-money-backup-20260315-0905.json"
        assert backup.backup_timestamp("quick-money-backup-20260315-0905.json") == FIXED_NOW
        assert backup.backup_timestamp("notes.json") is None

    def test_snapshot_uses_wire_keys(self, store):
        snapshot = backup.build_snapshot(store.state, now=FIXED_NOW)
        payload = json.loads(backup.snapshot_to_json(snapshot))
        assert payload["version"] == 1
        assert payload["exportedAt"].endswith("Z")
        assert set(payload) >= {"transactions", "categories", "accounts", "recurringTemplates"}
        assert payload["transactions"][1]["toAccountId"] == "Y"

    def test_round_trip_restores_deep_equal_state(self, store):
        original = store.state.copy()
        text = backup.snapshot_to_json(backup.build_snapshot(store.state, now=FIXED_NOW))

        scrambled = original.copy()
        scrambled.transactions = []
        scrambled.accounts = [Account(id="Z", name="Other")]
        restored = backup.restore_state(scrambled, backup.parse_snapshot(text), confirm=True)

        assert restored == original

    def test_parse_accepts_bom(self, store):
        text = backup.snapshot_to_json(backup.build_snapshot(store.state, now=FIXED_NOW))
        parsed = backup.parse_snapshot(b"\xef\xbb\xbf" + text.encode("utf-8"))
        assert len(parsed.transactions) == 2

    @pytest.mark.parametrize(
        "payload",
        [
            b"{ this is not json",
            b"[]",
            b'{"hello": "world"}',
            b'{"transactions": [{"amount": "lots"}]}',
            b"\xff\xfe\x00",
            b'{"accounts": [{"id": "A", "name": "A", "balance": Infinity}]}',
        ],
        ids=["not-json", "array", "no-collections", "bad-record", "not-utf8", "infinite-balance"],
    )
    def test_parse_rejects_garbage(self, payload):
        with pytest.raises(SnapshotFormatError):
            backup.parse_snapshot(payload)

    def test_missing_collections_are_kept(self, store):
        current = store.state.copy()
        snapshot = backup.parse_snapshot(json.dumps({"version": 1, "transactions": []}))

        restored = backup.restore_state(current, snapshot, confirm=True)
        assert restored.transactions == []
        assert restored.accounts == current.accounts
        assert restored.categories == current.categories

    def test_restore_requires_confirmation(self, store):
        snapshot = backup.build_snapshot(store.state, now=FIXED_NOW)
        with pytest.raises(RestoreNotConfirmed):
            backup.restore_state(store.state, snapshot)


class TestBackupManager:
    def test_mode_transitions(self, state_repo, tmp_path, folder):
        assert _manager(state_repo, tmp_path, supported=False).mode is BackupMode.FALLBACK

        manager = _manager(state_repo, tmp_path, folder)
        assert manager.mode is BackupMode.UNCONFIGURED
        manager.pick_folder()
        assert manager.mode is BackupMode.CONFIGURED
        assert manager.saved_folder_name() == "Backups"

        folder.granted = False
        assert manager.ensure_access() is AccessResult.DENIED
        assert manager.mode is BackupMode.DEGRADED

        manager.clear_folder()
        assert manager.mode is BackupMode.UNCONFIGURED

    def test_folder_choice_survives_new_session(self, state_repo, tmp_path, folder):
        _manager(state_repo, tmp_path, folder).pick_folder()
        later = _manager(state_repo, tmp_path, folder)
        assert later.mode is BackupMode.CONFIGURED
        assert later.ensure_access() is AccessResult.GRANTED

    def test_unsupported_runtime(self, state_repo, tmp_path):
        manager = _manager(state_repo, tmp_path, supported=False)
        assert manager.ensure_access() is AccessResult.UNSUPPORTED
        with pytest.raises(BackupError) as excinfo:
            manager.pick_folder()
        assert excinfo.value.code is BackupErrorCode.NOT_SUPPORTED

    def test_no_folder_is_distinct_from_denied(self, state_repo, tmp_path, folder, store):
        manager = _manager(state_repo, tmp_path, folder)
        with pytest.raises(BackupError) as excinfo:
            manager.backup_to_folder(store.state)
        assert excinfo.value.code is BackupErrorCode.NO_FOLDER

        manager.pick_folder()
        folder.granted = False
        with pytest.raises(BackupError) as excinfo:
            manager.backup_to_folder(store.state)
        assert excinfo.value.code is BackupErrorCode.PERMISSION_DENIED
        assert folder.files == {}

    def test_picker_dismissed(self, state_repo, tmp_path, folder):
        manager = _manager(state_repo, tmp_path, folder, picked=False)
        with pytest.raises(BackupCancelled):
            manager.pick_folder()
        assert manager.mode is BackupMode.UNCONFIGURED

    def test_access_checked_before_every_operation(self, state_repo, tmp_path, folder, store):
        manager = _manager(state_repo, tmp_path, folder)
        manager.pick_folder()
        name = manager.backup_to_folder(store.state)
        manager.list_backups()
        manager.read_backup(name)
        assert folder.permission_checks == 3

    def test_listing_is_filtered_and_newest_first(self, state_repo, tmp_path, folder, store, clock):
        manager = _manager(state_repo, tmp_path, folder, clock=clock)
        manager.pick_folder()
        for stamp in (datetime(2025, 12, 31, 23, 59), datetime(2026, 3, 1, 8, 0), datetime(2026, 1, 10, 12, 0)):
            clock.now = stamp
            manager.backup_to_folder(store.state)
        folder.files["notes.txt"] = b"hi"
        folder.files["other-app-20260101-0000.json"] = b"{}"

        assert manager.list_backups() == [
            "quick-money-backup-20260301-0800.json",
            "quick-money-backup-20260110-1200.json",
            "quick-money-backup-20251231-2359.json",
        ]

    def test_retention_prunes_oldest(self, state_repo, tmp_path, folder, store, clock):
        manager = _manager(state_repo, tmp_path, folder, clock=clock, retention=2)
        manager.pick_folder()
        for day in (1, 2, 3):
            clock.now = datetime(2026, 3, day, 9, 0)
            manager.backup_to_folder(store.state)
        assert sorted(folder.files) == [
            "quick-money-backup-20260302-0900.json",
            "quick-money-backup-20260303-0900.json",
        ]

    def test_retention_ignores_hand_placed_files(self, state_repo, tmp_path, folder, store, clock):
        folder.files["quick-money-backup-manual.json"] = b"{}"
        folder.files["quick-money-backup-20250101-0000-copy.json"] = b"{}"
        manager = _manager(state_repo, tmp_path, folder, clock=clock, retention=2)
        manager.pick_folder()
        for day in (1, 2, 3):
            clock.now = datetime(2026, 3, day, 9, 0)
            manager.backup_to_folder(store.state)
        assert sorted(folder.files) == [
            "quick-money-backup-20250101-0000-copy.json",
            "quick-money-backup-20260302-0900.json",
            "quick-money-backup-20260303-0900.json",
            "quick-money-backup-manual.json",
        ]
        assert "quick-money-backup-manual.json" in manager.list_backups()

    def test_timestamped_name_shape(self):
        assert backup.is_timestamped_backup("quick-money-backup-20260315-0905.json")
        assert not backup.is_timestamped_backup("quick-money-backup-manual.json")
        assert not backup.is_timestamped_backup("quick-money-backup-x-20260315-0905.json")
        assert not backup.is_timestamped_backup("quick-money-backup-20260315-0905.json.bak")

    def test_fallback_bytes_match_folder_bytes(self, state_repo, tmp_path, folder, store):
        manager = _manager(state_repo, tmp_path, folder)
        manager.pick_folder()
        name = manager.backup_to_folder(store.state)
        path = manager.download_fallback(store.state)

        assert path.name == name
        assert path.read_bytes() == folder.files[name]

    def test_read_file_accepts_paths_and_streams(self, state_repo, tmp_path, store):
        manager = _manager(state_repo, tmp_path, supported=False)
        path = manager.download_fallback(store.state)

        from_path = manager.read_file(path)
        with path.open("rb") as fh:
            from_stream = manager.read_file(fh)
        from_text = manager.read_file(io.StringIO(path.read_text(encoding="utf-8")))
        assert from_path == from_stream == from_text
        with pytest.raises(BackupCancelled):
            manager.read_file(None)


class TestLocalFolderHandle:
    def test_atomic_write_and_listing(self, tmp_path):
        handle = LocalFolderHandle(tmp_path / "backups")
        assert handle.request_permission() is False

        handle.path.mkdir()
        assert handle.request_permission() is True
        handle.write_bytes("quick-money-backup-20260315-0905.json", b"{}")

        assert handle.list_names() == ["quick-money-backup-20260315-0905.json"]
        assert handle.read_bytes("quick-money-backup-20260315-0905.json") == b"{}"
        assert LocalFolderHandle.from_token(handle.token()).path == handle.path

        handle.remove("quick-money-backup-20260315-0905.json")
        handle.remove("quick-money-backup-20260315-0905.json")
        assert handle.list_names() == []

    def test_manager_against_real_directory(self, state_repo, tmp_path, store):
        target = tmp_path / "chosen"
        target.mkdir()
        manager = BackupManager(
            state_repo,
            "tester",
            downloads_dir=tmp_path / "downloads",
            picker=lambda: LocalFolderHandle(target),
            clock=Clock(),
        )
        manager.pick_folder()
        name = manager.backup_to_folder(store.state)

        assert (target / name).is_file()
        assert not list(target.glob("*.partial"))
        assert manager.read_backup(name).transactions == store.state.transactions


class TestBackupService:
    def test_backup_and_restore_from_folder(self, service, store, folder):
        assert service.choose_folder().ok
        status = service.backup()
        assert status.kind is StatusKind.SUCCESS
        assert status.filename in folder.files

        original = store.state.copy()
        store.state.transactions = []
        store.commit()

        listing, names = service.list_backups()
        assert listing.ok and names == [status.filename]

        result = service.restore_from_folder(names[0], _confirm_yes)
        assert result.ok
        assert store.state == original
        assert LedgerStore(store.repo, "tester").state == original

    def test_backup_waits_for_in_flight_mutation(self, service, store, folder, make_tx):
        service.choose_folder()
        results = []
        worker = threading.Thread(target=lambda: results.append(service.backup()))

        with store.lock:
            transaction_log.add(store.state, make_tx(30, "transfer", to_account_id="Y"))
            worker.start()
            worker.join(timeout=0.2)
            assert worker.is_alive()
            assert folder.files == {}
            transaction_log.add(store.state, make_tx(20))
            store.commit()
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert results[0].ok
        written = backup.parse_snapshot(folder.files[results[0].filename])
        assert len(written.transactions) == 4
        restored = backup.restore_state(store.state, written, confirm=True)
        assert ledger_service.detect_drift(restored) == []

    def test_snapshot_is_detached_from_live_state(self, store, make_tx):
        copy = store.snapshot()
        transaction_log.add(store.state, make_tx(5))
        assert len(copy.transactions) == 2
        assert copy.accounts != store.state.accounts

    def test_cancelled_picker_is_info(self, state_repo, tmp_path, folder, store):
        svc = BackupService(_manager(state_repo, tmp_path, folder, picked=False), store)
        status = svc.choose_folder()
        assert status.kind is StatusKind.INFO
        assert status.code is None

    def test_permission_revoked_reports_error_and_writes_nothing(self, service, folder):
        service.choose_folder()
        folder.granted = False

        status = service.backup()
        assert status.kind is StatusKind.ERROR
        assert status.code == "PERMISSION_DENIED"
        assert folder.files == {}
        assert service.mode is BackupMode.DEGRADED

    def test_no_folder_reports_no_folder(self, service):
        status = service.backup()
        assert status.code == "NO_FOLDER"
        listing, names = service.list_backups()
        assert listing.code == "NO_FOLDER" and names == []

    def test_empty_folder_listing_is_info(self, service):
        service.choose_folder()
        listing, names = service.list_backups()
        assert listing.kind is StatusKind.INFO
        assert names == []

    def test_unsupported_runtime_downloads_instead(self, state_repo, tmp_path, store):
        svc = BackupService(_manager(state_repo, tmp_path, supported=False), store)
        assert svc.mode is BackupMode.FALLBACK

        status = svc.backup()
        assert status.ok
        assert (tmp_path / "downloads" / status.filename).is_file()
        assert svc.choose_folder().code == "NOT_SUPPORTED"

    def test_corrupt_file_leaves_state_unchanged(self, service, store, tmp_path):
        before = store.state.copy()
        bad = tmp_path / "broken.json"
        bad.write_text("{ definitely not json", encoding="utf-8")

        status = service.restore_from_file(bad, _confirm_yes)
        assert status.kind is StatusKind.ERROR
        assert status.code == backup.PARSE_ERROR
        assert store.state == before
        assert LedgerStore(store.repo, "tester").state == before

    def test_declined_confirmation_changes_nothing(self, service, store, tmp_path):
        path = service.manager.download_fallback(store.state)
        before = store.state.copy()
        store.state.accounts = []
        store.commit()

        status = service.restore_from_file(path, lambda snapshot: False)
        assert status.kind is StatusKind.INFO
        assert store.state.accounts == []

        status = service.restore_from_file(path, _confirm_yes)
        assert status.ok and status.filename == path.name
        assert store.state == before

    def test_confirm_sees_snapshot_before_restore(self, service, store):
        path = service.manager.download_fallback(store.state)
        seen = []

        def confirm(snapshot):
            seen.append((snapshot.version, len(snapshot.transactions)))
            return True

        with Path(path).open("rb") as fh:
            assert service.restore_from_file(fh, confirm).ok
        assert seen == [(1, 2)]

    def test_cancelled_file_pick_is_info(self, service):
        assert service.restore_from_file(None, _confirm_yes).kind is StatusKind.INFO

    def test_missing_file_is_io_error(self, service, tmp_path):
        status = service.restore_from_file(tmp_path / "gone.json", _confirm_yes)
        assert status.code == backup.IO_ERROR
