"""Confirmation reminders — nudge users who signed up but never confirmed."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from nudge.config import settings
from nudge.subjects import Subject, SubjectKind

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from nudge.notifiers import Notifier
    from nudge.scheduler.engine import SchedulerEngine

logger = logging.getLogger(__name__)

CONFIRMATION_REMINDER = "confirmation_reminder"
REMINDER_TASK_NAME = "confirmation-reminder"


def _as_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def is_eligible(subject: Subject, now: datetime, min_age: timedelta) -> bool:
    """Return True for a user created at least *min_age* ago and still unconfirmed.

    A record with an unparseable timestamp is logged and treated as ineligible.
    """
    if subject.subject_kind != SubjectKind.USER:
        return False
    try:
        confirmed_at = _as_datetime(subject.attributes.get("confirmed_at"))
        created_at = _as_datetime(subject.attributes.get("created_at"))
    except (TypeError, ValueError) as exc:
        logger.warning(
            "Skipping %s/%s: bad timestamp: %s",
            subject.subject_kind,
            subject.subject_id,
            exc,
        )
        return False
    if confirmed_at is not None or created_at is None:
        return False
    return created_at <= _as_datetime(now) - min_age


class UnconfirmedUserSource:
    """Subject source yielding users due a confirmation reminder.

    Args:
        users: Callable returning the current users as subjects.
        min_age: How old an account must be (default from settings).
        clock: Callable returning "now" (for testing).
    """

    def __init__(
        self,
        users: Callable[[], Iterable[Subject]],
        min_age: timedelta | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._users = users
        self._min_age = (
            min_age if min_age is not None else timedelta(days=settings.reminder_min_age_days)
        )
        self._clock = clock or (lambda: datetime.now(UTC))

    def __call__(self) -> list[Subject]:
        now = _as_datetime(self._clock())
        eligible = [u for u in self._users() if is_eligible(u, now, self._min_age)]
        logger.debug("%d user(s) eligible for a confirmation reminder", len(eligible))
        return eligible


def register_confirmation_reminder(
    engine: SchedulerEngine,
    source: UnconfirmedUserSource,
    notifier: Notifier,
) -> None:
    """Bind the confirmation-reminder task to *engine*."""
    engine.register_handler(
        REMINDER_TASK_NAME,
        source,
        notifier,
        notification_kind=CONFIRMATION_REMINDER,
        description="Confirmation reminder sent",
    )
