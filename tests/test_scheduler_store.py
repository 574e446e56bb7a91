"""Tests for RegistrationStore and ReportStore — libsql persistence."""

from datetime import time, timedelta

import pytest

from nudge.errors import Conflict
from nudge.scheduler.models import Cadence, ScheduledTaskRegistration, TaskReport
from nudge.scheduler.store import RegistrationStore, ReportStore

pytestmark = pytest.mark.usefixtures("_no_turso")


def _make_registration(
    task_name: str = "reminder",
    every: timedelta = timedelta(days=1),
    **kwargs,
) -> ScheduledTaskRegistration:
    defaults = {
        "cadence": Cadence(interval=every, anchor=time(4, 30)),
        "created_at": "2025-01-01T00:00:00",
        "next_run_at": "2025-01-01T04:30:00+00:00",
    }
    defaults.update(kwargs)
    return ScheduledTaskRegistration(task_name=task_name, **defaults)


# -- insert_unique / find_by_name ----------------------------------------------


async def test_insert_and_find(registration_store: RegistrationStore) -> None:
    reg = _make_registration(queue_label="mailers")
    await registration_store.insert_unique(reg)

    fetched = await registration_store.find_by_name("reminder")
    assert fetched == reg
    assert fetched.queue_label == "mailers"


async def test_find_not_found(registration_store: RegistrationStore) -> None:
    assert await registration_store.find_by_name("nonexistent") is None


async def test_insert_duplicate_name_conflicts(registration_store: RegistrationStore) -> None:
    await registration_store.insert_unique(_make_registration())

    with pytest.raises(Conflict) as exc_info:
        await registration_store.insert_unique(_make_registration(every=timedelta(hours=1)))
    assert exc_info.value.task_name == "reminder"

    fetched = await registration_store.find_by_name("reminder")
    assert fetched is not None
    assert fetched.cadence.interval == timedelta(days=1)


# -- delete_by_name ------------------------------------------------------------


async def test_delete_by_name(registration_store: RegistrationStore) -> None:
    await registration_store.insert_unique(_make_registration("reminder"))
    await registration_store.insert_unique(_make_registration("daily-digest"))

    removed = await registration_store.delete_by_name("reminder")
    assert removed == 1
    assert await registration_store.find_by_name("reminder") is None
    assert await registration_store.find_by_name("daily-digest") is not None


async def test_delete_missing_returns_zero(registration_store: RegistrationStore) -> None:
    assert await registration_store.delete_by_name("nonexistent") == 0


async def test_delete_matches_logical_name_only(registration_store: RegistrationStore) -> None:
    await registration_store.insert_unique(_make_registration("reminder"))
    await registration_store.insert_unique(_make_registration("reminder-weekly"))

    await registration_store.delete_by_name("reminder")
    remaining = [r.task_name for r in await registration_store.list_registrations()]
    assert remaining == ["reminder-weekly"]


# -- list_registrations --------------------------------------------------------


async def test_list_registrations_sorted(registration_store: RegistrationStore) -> None:
    await registration_store.insert_unique(_make_registration("b"))
    await registration_store.insert_unique(_make_registration("a"))

    names = [r.task_name for r in await registration_store.list_registrations()]
    assert names == ["a", "b"]


async def test_list_registrations_empty(registration_store: RegistrationStore) -> None:
    assert await registration_store.list_registrations() == []


# -- ReportStore ---------------------------------------------------------------


async def test_reports_append_only(report_store: ReportStore) -> None:
    first = TaskReport("reminder", "first", "2025-01-01T04:30:00+00:00", "2025-01-01T00:00:00")
    second = TaskReport("reminder", "second", "2025-01-02T04:30:00+00:00", "2025-01-02T00:00:00")
    other = TaskReport("digest", "other", None, "2025-01-01T00:00:00")
    await report_store.append(first)
    await report_store.append(second)
    await report_store.append(other)

    reports = await report_store.list_for_task("reminder")
    assert reports == [first, second]


# -- Singleton -----------------------------------------------------------------


def test_singleton_reset() -> None:
    RegistrationStore._reset()
    try:
        a = RegistrationStore.get()
        RegistrationStore._reset()
        b = RegistrationStore.get()
        assert a is not b
    finally:
        RegistrationStore._reset()
