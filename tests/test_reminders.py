"""Tests for the confirmation reminder use case."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from nudge.reminders import (
    CONFIRMATION_REMINDER,
    REMINDER_TASK_NAME,
    UnconfirmedUserSource,
    is_eligible,
    register_confirmation_reminder,
)
from nudge.scheduler import RecurringTaskRegistrar, RegistrationStore, SchedulerEngine
from nudge.subjects import Subject

pytestmark = pytest.mark.usefixtures("_no_turso")

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)
WEEK = timedelta(days=7)


def _user(user_id: str, age_days: float, confirmed: bool = False) -> Subject:
    attributes = {"created_at": (NOW - timedelta(days=age_days)).isoformat()}
    if confirmed:
        attributes["confirmed_at"] = NOW.isoformat()
    return Subject(user_id, "user", attributes)


# -- is_eligible ---------------------------------------------------------------


def test_old_unconfirmed_user_is_eligible() -> None:
    assert is_eligible(_user("1", 8), NOW, WEEK) is True


def test_exactly_min_age_is_eligible() -> None:
    assert is_eligible(_user("1", 7), NOW, WEEK) is True


def test_new_user_not_eligible() -> None:
    assert is_eligible(_user("1", 2), NOW, WEEK) is False


def test_confirmed_user_not_eligible() -> None:
    assert is_eligible(_user("1", 30, confirmed=True), NOW, WEEK) is False


def test_non_user_not_eligible() -> None:
    post = Subject("1", "post", {"created_at": "2020-01-01T00:00:00"})
    assert is_eligible(post, NOW, WEEK) is False


def test_missing_created_at_not_eligible() -> None:
    assert is_eligible(Subject("1", "user"), NOW, WEEK) is False


def test_naive_timestamps_treated_as_utc() -> None:
    user = Subject("1", "user", {"created_at": datetime(2025, 6, 1, 12, 0)})
    assert is_eligible(user, NOW, WEEK) is True


def test_malformed_created_at_not_eligible(caplog: pytest.LogCaptureFixture) -> None:
    user = Subject("bad", "user", {"created_at": "not-a-date"})

    assert is_eligible(user, NOW, WEEK) is False
    assert "user/bad" in caplog.text


def test_malformed_confirmed_at_not_eligible() -> None:
    user = Subject("1", "user", {"created_at": "2020-01-01", "confirmed_at": 12.5})
    assert is_eligible(user, NOW, WEEK) is False


def test_naive_now_accepted() -> None:
    assert is_eligible(_user("1", 8), NOW.replace(tzinfo=None), WEEK) is True


# -- UnconfirmedUserSource -----------------------------------------------------


def test_source_filters_users() -> None:
    users = [_user("old", 10), _user("new", 1), _user("done", 10, confirmed=True)]
    source = UnconfirmedUserSource(lambda: users, min_age=WEEK, clock=lambda: NOW)

    assert [s.subject_id for s in source()] == ["old"]


def test_source_default_min_age_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("nudge.config.settings.reminder_min_age_days", 1)
    source = UnconfirmedUserSource(lambda: [_user("1", 2)], clock=lambda: NOW)

    assert len(source()) == 1


def test_source_is_restartable() -> None:
    source = UnconfirmedUserSource(lambda: [_user("1", 10)], min_age=WEEK, clock=lambda: NOW)
    assert source() == source()


def test_source_with_naive_clock() -> None:
    source = UnconfirmedUserSource(
        lambda: [_user("1", 10)], min_age=WEEK, clock=lambda: NOW.replace(tzinfo=None)
    )
    assert [s.subject_id for s in source()] == ["1"]



# -- Wiring --------------------------------------------------------------------


def test_register_confirmation_reminder_binds_handler() -> None:
    engine = MagicMock(spec=SchedulerEngine)
    source = UnconfirmedUserSource(list, min_age=WEEK)
    notifier = AsyncMock(return_value=True)

    register_confirmation_reminder(engine, source, notifier)

    engine.register_handler.assert_called_once_with(
        REMINDER_TASK_NAME,
        source,
        notifier,
        notification_kind=CONFIRMATION_REMINDER,
        description="Confirmation reminder sent",
    )


async def test_end_to_end_reminder_sent_once(
    registration_store: RegistrationStore, registrar: RecurringTaskRegistrar
) -> None:
    engine = SchedulerEngine(store=registration_store, registrar=registrar, timezone="UTC")
    users = [_user("1", 10), _user("2", 1)]
    source = UnconfirmedUserSource(lambda: users, min_age=WEEK, clock=lambda: NOW)
    notifier = AsyncMock(return_value=True)
    register_confirmation_reminder(engine, source, notifier)

    first = await engine.run_now(REMINDER_TASK_NAME)
    second = await engine.run_now(REMINDER_TASK_NAME)

    assert [s.subject_id for s in first.notified] == ["1"]
    assert second.notified == []
    notifier.assert_awaited_once()


async def test_malformed_record_does_not_abort_batch(
    registrar: RecurringTaskRegistrar,
) -> None:
    users = [
        _user("a", 10),
        Subject("b", "user", {"created_at": "31/02/2024"}),
        _user("c", 10),
    ]
    source = UnconfirmedUserSource(lambda: users, min_age=WEEK, clock=lambda: NOW)
    notifier = AsyncMock(return_value=True)

    result = await registrar.fire(
        REMINDER_TASK_NAME, source, notifier, notification_kind=CONFIRMATION_REMINDER
    )

    assert [s.subject_id for s in result.notified] == ["a", "c"]
    assert result.ok is True
    assert notifier.await_count == 2
