"""Background auto-backup scheduling."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .services.backup import BackupStatus

if TYPE_CHECKING:
    from .context import AppContext

logger = logging.getLogger("quickmoney.scheduler")

AUTO_BACKUP_JOB_ID = "auto_backup"


class AutoBackupScheduler:
    """Runs a daily snapshot backup while the app is open."""

    def __init__(self, ctx: AppContext):
        self.ctx = ctx
        self.scheduler: Optional[BackgroundScheduler] = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None

    def start(self) -> None:
        if not self.ctx.config.AUTO_BACKUP:
            logger.info("Auto backup disabled; scheduler not started")
            return
        if self.scheduler is not None:
            logger.warning("Scheduler already running")
            return

        self.scheduler = BackgroundScheduler()
        self.scheduler.add_job(
            func=self.run_backup,
            trigger=CronTrigger(hour=self.ctx.config.AUTO_BACKUP_HOUR, minute=0),
            id=AUTO_BACKUP_JOB_ID,
            name="Daily ledger backup",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("Scheduled daily backup at %02d:00", self.ctx.config.AUTO_BACKUP_HOUR)

    def stop(self) -> None:
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=True)
            self.scheduler = None
            logger.info("Background scheduler stopped")

    def run_backup(self) -> BackupStatus:
        """Job body; the backup service never raises, it reports a status."""

        status = self.ctx.backup.backup()
        if status.ok:
            logger.info("Scheduled backup completed: %s", status.filename)
        else:
            logger.warning("Scheduled backup did not complete: %s", status.message, extra={"code": status.code})
        return status


def create_scheduler(ctx: AppContext, *, auto_start: bool = False) -> AutoBackupScheduler:
    """Create and optionally start the auto-backup scheduler."""

    scheduler = AutoBackupScheduler(ctx)
    if auto_start:
        scheduler.start()
    return scheduler
