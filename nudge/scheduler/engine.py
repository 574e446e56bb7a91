"""SchedulerEngine — APScheduler clock that fires registered tasks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from nudge.config import settings
from nudge.errors import StorageUnavailable

if TYPE_CHECKING:
    from nudge.scheduler.models import BatchResult, ScheduledTaskRegistration
    from nudge.scheduler.registrar import NotifyFn, RecurringTaskRegistrar, SubjectProvider
    from nudge.scheduler.store import RegistrationStore

logger = logging.getLogger(__name__)


@dataclass
class TaskHandler:
    """What a task does when it fires."""

    eligible_subjects: SubjectProvider
    notify: NotifyFn
    notification_kind: str | None = None
    description: str = ""


class SchedulerEngine:
    """Manages the APScheduler lifecycle and maps registrations to jobs.

    Registrations are owned by the deployment hook; the engine only reads
    them.  A registration fires only if a handler was registered for its
    task name.

    Args:
        store: RegistrationStore to load registrations from.
        registrar: RecurringTaskRegistrar whose ``fire`` runs each job.
        timezone: IANA timezone string (default from settings).
    """

    def __init__(
        self,
        store: RegistrationStore,
        registrar: RecurringTaskRegistrar,
        timezone: str | None = None,
    ) -> None:
        self._store = store
        self._registrar = registrar
        self._timezone = timezone or settings.scheduler_timezone
        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        self._handlers: dict[str, TaskHandler] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def register_handler(
        self,
        task_name: str,
        eligible_subjects: SubjectProvider,
        notify: NotifyFn,
        *,
        notification_kind: str | None = None,
        description: str = "",
    ) -> None:
        """Bind *task_name* to the work it performs when fired."""
        self._handlers[task_name] = TaskHandler(
            eligible_subjects=eligible_subjects,
            notify=notify,
            notification_kind=notification_kind,
            description=description,
        )

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Load registrations from the store, create jobs, and start the scheduler."""
        count = await self._load_jobs()
        self._scheduler.start()
        self._running = True
        logger.info(
            "Scheduler started with %d job(s) (tz=%s)",
            count,
            self._timezone,
        )

    async def stop(self) -> None:
        """Shut down the scheduler."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    async def reload(self) -> None:
        """Remove all jobs and re-load from the store (picks up redeploys)."""
        self._scheduler.remove_all_jobs()
        count = await self._load_jobs()
        logger.info("Reloaded %d job(s)", count)

    # -- Execution -------------------------------------------------------------

    async def run_now(self, task_name: str) -> BatchResult | None:
        """Fire *task_name* immediately. Returns None if it has no handler."""
        handler = self._handlers.get(task_name)
        if handler is None:
            logger.warning("No handler registered for task: %s", task_name)
            return None
        return await self._registrar.fire(
            task_name,
            handler.eligible_subjects,
            handler.notify,
            notification_kind=handler.notification_kind,
            description=handler.description,
        )

    # -- Internal --------------------------------------------------------------

    async def _load_jobs(self) -> int:
        registrations = await self._store.list_registrations()
        count = 0
        for registration in registrations:
            if registration.task_name not in self._handlers:
                logger.warning(
                    "Skipping registration without handler: %s", registration.task_name
                )
                continue
            self._add_job(registration)
            count += 1
        return count

    def _add_job(self, registration: ScheduledTaskRegistration):
        """Create an APScheduler job for the given registration. Returns the Job."""
        return self._scheduler.add_job(
            self._run_task,
            trigger=registration.cadence.trigger(),
            id=registration.task_name,
            name=f"{registration.task_name}@{registration.queue_label}",
            args=[registration.task_name],
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            replace_existing=True,
        )

    async def _run_task(self, task_name: str) -> None:
        """Callback invoked by APScheduler."""
        try:
            result = await self.run_now(task_name)
        except StorageUnavailable:
            logger.exception("Task '%s' aborted: ledger unavailable", task_name)
            return
        if result is not None and not result.ok:
            for failure in result.failures:
                logger.warning("Task '%s': %s", task_name, failure)
