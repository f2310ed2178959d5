"""Application context for dependency injection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping, Optional

from sqlalchemy.engine import Engine

from .config import BaseConfig
from .forms import TransactionForm
from .infra.database import SessionFactory, create_db_engine, create_session_factory, init_database
from .infra.repositories import SQLModelStateRepository
from .logging_config import setup_logging
from .models import LedgerState, Transaction
from .services import ledger_service, recurring, transaction_log
from .services.backup import BackupManager, BackupService, FolderPicker, HandleLoader, LocalFolderHandle
from .services.persistence import LedgerStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything the presentation layer needs for one user session."""

    config: BaseConfig
    engine: Engine
    session_factory: SessionFactory
    state_repo: SQLModelStateRepository
    store: LedgerStore
    backup: BackupService
    namespace: str
    generated_on_load: list[Transaction] = field(default_factory=list)

    @property
    def state(self) -> LedgerState:
        return self.store.state

    def commit(self) -> None:
        self.store.commit()

    # write paths used by the entry/maintenance screens ----------------------

    def record(self, form: TransactionForm) -> Transaction:
        with self.store.lock:
            tx = transaction_log.add(self.state, form.to_transaction())
            self.commit()
        return tx

    def edit(self, transaction_id: int, patch: Mapping[str, Any]) -> Transaction:
        with self.store.lock:
            tx = transaction_log.update(self.state, transaction_id, patch)
            self.commit()
        return tx

    def delete(self, transaction_id: int) -> Transaction:
        with self.store.lock:
            tx = transaction_log.remove(self.state, transaction_id)
            self.commit()
        return tx

    def check_drift(self) -> list[ledger_service.BalanceDrift]:
        drifts = ledger_service.detect_drift(self.state)
        for drift in drifts:
            logger.warning(
                "Account balance drift detected",
                extra={
                    "account_id": drift.account_id,
                    "materialized": drift.materialized,
                    "expected": drift.expected,
                },
            )
        return drifts

    def close(self) -> None:
        self.engine.dispose()


def create_app_context(
    config: Optional[BaseConfig] = None,
    *,
    folder_picker: Optional[FolderPicker] = None,
    handle_loader: HandleLoader = LocalFolderHandle.from_token,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    init_logging: bool = True,
) -> AppContext:
    """Create the context and prepare the session's ledger.

    Recurring templates are evaluated and their output persisted before this
    returns, so the first ledger read already sees generated entries.
    """

    if config is None:
        config = BaseConfig()
    if init_logging:
        setup_logging(config)

    engine = create_db_engine(config)
    init_database(engine)
    session_factory = create_session_factory(engine)
    state_repo = SQLModelStateRepository(session_factory)

    namespace = config.USER_NAMESPACE
    store = LedgerStore(state_repo, namespace)

    generated = recurring.run_recurring(store.state, today=today, now=now)
    if generated:
        store.commit()
        logger.info("Recurring templates applied on load", extra={"generated": len(generated)})

    manager = BackupManager(
        state_repo,
        namespace,
        downloads_dir=config.DOWNLOADS_DIR,
        picker=folder_picker,
        handle_loader=handle_loader,
        prefix=config.BACKUP_PREFIX,
        version=config.BACKUP_VERSION,
        retention=config.BACKUP_RETENTION,
    )

    return AppContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        state_repo=state_repo,
        store=store,
        backup=BackupService(manager, store),
        namespace=namespace,
        generated_on_load=generated,
    )
