"""Shared test fixtures."""

from pathlib import Path

import pytest

from nudge.ledger import LedgerStore, NotificationLedger
from nudge.scheduler import RecurringTaskRegistrar, RegistrationStore, ReportStore


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("nudge.config.settings.turso_database_url", "")


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def ledger_store(db_path: Path) -> LedgerStore:
    return LedgerStore(db_path=db_path)


@pytest.fixture
def ledger(ledger_store: LedgerStore) -> NotificationLedger:
    return NotificationLedger(store=ledger_store)


@pytest.fixture
def registration_store(db_path: Path) -> RegistrationStore:
    return RegistrationStore(db_path=db_path)


@pytest.fixture
def report_store(db_path: Path) -> ReportStore:
    return ReportStore(db_path=db_path)


@pytest.fixture
def registrar(
    registration_store: RegistrationStore,
    report_store: ReportStore,
    ledger: NotificationLedger,
) -> RecurringTaskRegistrar:
    return RecurringTaskRegistrar(
        store=registration_store,
        reports=report_store,
        ledger=ledger,
        max_attempts=10,
    )
