"""RecurringTaskRegistrar — one live registration per task name, and its firing."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from nudge.config import settings
from nudge.errors import (
    AlreadyRecorded,
    Conflict,
    NotifyFailure,
    SchedulerUnavailable,
    StorageUnavailable,
)
from nudge.ledger import NotificationLedger
from nudge.notifiers import NotificationOutcome, as_outcome
from nudge.scheduler.models import BatchResult, ScheduledTaskRegistration, TaskReport
from nudge.scheduler.store import RegistrationStore, ReportStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable

    from nudge.scheduler.models import Cadence
    from nudge.subjects import Subject

    SubjectProvider = Callable[[], Iterable[Subject] | AsyncIterable[Subject]]
    NotifyFn = Callable[[Subject], Awaitable[NotificationOutcome | bool]]

logger = logging.getLogger(__name__)


async def _iterate(
    subjects: Iterable[Subject] | AsyncIterable[Subject],
) -> AsyncIterator[Subject]:
    if hasattr(subjects, "__aiter__"):
        async for subject in subjects:
            yield subject
    else:
        for subject in subjects:
            yield subject


class RecurringTaskRegistrar:
    """Installs, reports on, and fires recurring tasks.

    Per task name the registrar moves between two states: unregistered and
    registered.  Every :meth:`install` replaces the current registration with
    a new instance; :meth:`report_outcome` leaves the state unchanged.

    Args:
        store: RegistrationStore holding the live registrations.
        reports: ReportStore receiving one report per successful install.
        ledger: NotificationLedger consulted and written by :meth:`fire`.
        max_attempts: Delete-then-insert rounds before giving up on a
            contended install (default from settings).
    """

    def __init__(
        self,
        store: RegistrationStore | None = None,
        reports: ReportStore | None = None,
        ledger: NotificationLedger | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self._store = store or RegistrationStore.get()
        self._reports = reports or ReportStore.get()
        self._ledger = ledger or NotificationLedger()
        self._max_attempts = max_attempts or settings.install_max_attempts

    # -- Deployment-time operations --------------------------------------------

    async def install(
        self,
        task_name: str,
        cadence: Cadence,
        queue_label: str | None = None,
    ) -> ScheduledTaskRegistration:
        """Replace any registration named *task_name* with a fresh one.

        Concurrent installs for the same name converge: the store's unique
        constraint rejects all but one insert and the losers retry.

        Raises:
            SchedulerUnavailable: the store could not be written, or the
                install did not converge within ``max_attempts``.
        """
        queue = queue_label or settings.default_queue
        for attempt in range(1, self._max_attempts + 1):
            now = datetime.now(UTC)
            registration = ScheduledTaskRegistration(
                task_name=task_name,
                cadence=cadence,
                queue_label=queue,
                created_at=now.isoformat(),
                next_run_at=cadence.next_fire_time(now).isoformat(),
            )
            try:
                await self._store.delete_by_name(task_name)
                await self._store.insert_unique(registration)
            except Conflict:
                logger.info(
                    "Install of '%s' lost a race (attempt %d/%d), retrying",
                    task_name,
                    attempt,
                    self._max_attempts,
                )
                continue
            except StorageUnavailable as exc:
                logger.error("Install of '%s' failed: %s", task_name, exc)
                raise SchedulerUnavailable(task_name, str(exc)) from exc

            logger.info(
                "Installed '%s' %s on queue '%s' (next run %s)",
                task_name,
                cadence.describe(),
                queue,
                registration.next_run_at,
            )
            return registration

        reason = f"no convergence after {self._max_attempts} attempt(s)"
        logger.error("Install of '%s' failed: %s", task_name, reason)
        raise SchedulerUnavailable(task_name, reason)

    async def report_outcome(
        self, task_name: str, description: str | None = None
    ) -> TaskReport | None:
        """Emit a report for the current registration of *task_name*.

        Returns None, without raising, when there is nothing to report on.
        """
        try:
            registration = await self._store.find_by_name(task_name)
        except StorageUnavailable:
            logger.exception("Could not look up registration '%s' for reporting", task_name)
            return None
        if registration is None:
            logger.warning("No registration for '%s'; no report produced", task_name)
            return None

        report = TaskReport(
            task_name=task_name,
            description=description
            or (
                f"{task_name} scheduled {registration.cadence.describe()}"
                f" on queue {registration.queue_label}"
            ),
            first_run_at=registration.next_run_at,
            registration_id=registration.id,
        )
        await self._reports.append(report)
        logger.info("Reported '%s': first run at %s", task_name, report.first_run_at)
        return report

    async def reports(self, task_name: str) -> list[TaskReport]:
        """Return the report history for *task_name*, oldest first."""
        return await self._reports.list_for_task(task_name)

    # -- Clock-driven operation ------------------------------------------------

    async def fire(
        self,
        task_name: str,
        eligible_subjects: SubjectProvider,
        notify: NotifyFn,
        *,
        notification_kind: str | None = None,
        description: str = "",
    ) -> BatchResult:
        """Notify every eligible subject that has not been notified yet.

        A subject is recorded in the ledger only after *notify* succeeds.
        Failures (including exceptions and timeouts raised by *notify*) are
        collected in the result and never stop the batch.

        Raises:
            StorageUnavailable: the ledger cannot be reached; the batch is
                aborted.
        """
        kind = notification_kind or task_name
        result = BatchResult(task_name=task_name, notification_kind=kind)

        async for subject in _iterate(eligible_subjects()):
            if await self._ledger.has_been_notified(
                subject.subject_id, subject.subject_kind, kind
            ):
                result.skipped.append(subject)
                continue

            try:
                outcome = as_outcome(await notify(subject))
            except Exception as exc:
                logger.warning("Notify raised for %s: %r", subject, exc)
                outcome = NotificationOutcome.failed(f"{type(exc).__name__}: {exc}")

            if not outcome.success:
                logger.warning("Notify failed for %s: %s", subject, outcome.detail)
                result.failures.append(NotifyFailure(subject, outcome.detail))
                continue

            try:
                await self._ledger.record_notification(
                    subject.subject_id,
                    subject.subject_kind,
                    kind,
                    description=description or outcome.detail or f"{kind} via {task_name}",
                )
            except AlreadyRecorded:
                logger.warning(
                    "Duplicate %s sent to %s: a concurrent firing recorded it first",
                    kind,
                    subject,
                )
                result.duplicates.append(subject)
                continue
            result.notified.append(subject)

        logger.info("Fired %s", result.summary())
        return result
