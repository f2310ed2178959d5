"""Auto-backup scheduler tests."""

from __future__ import annotations

from datetime import date

import pytest

from quickmoney import create_app_context
from quickmoney.scheduler import AUTO_BACKUP_JOB_ID, create_scheduler
from quickmoney.services.backup import StatusKind


@pytest.fixture
def ctx(config):
    context = create_app_context(config, init_logging=False, today=date(2026, 3, 1))
    yield context
    context.close()


def test_disabled_scheduler_does_not_start(ctx):
    scheduler = create_scheduler(ctx, auto_start=True)
    assert scheduler.running is False
    scheduler.stop()


def test_enabled_scheduler_registers_daily_job(ctx):
    ctx.config.AUTO_BACKUP = True
    ctx.config.AUTO_BACKUP_HOUR = 4
    scheduler = create_scheduler(ctx, auto_start=True)
    try:
        assert scheduler.running
        job = scheduler.scheduler.get_job(AUTO_BACKUP_JOB_ID)
        assert job is not None
        assert str(job.trigger.fields[5]) == "4"

        scheduler.start()
        assert len(scheduler.scheduler.get_jobs()) == 1
    finally:
        scheduler.stop()
    assert scheduler.running is False


def test_run_backup_writes_download_in_fallback_mode(ctx):
    status = create_scheduler(ctx).run_backup()
    assert status.kind is StatusKind.SUCCESS
    assert (ctx.config.DOWNLOADS_DIR / status.filename).is_file()


def test_run_backup_reports_missing_folder(config):
    ctx = create_app_context(config, init_logging=False, folder_picker=lambda: None)
    try:
        status = create_scheduler(ctx).run_backup()
        assert status.kind is StatusKind.ERROR
        assert status.code == "NO_FOLDER"
    finally:
        ctx.close()
