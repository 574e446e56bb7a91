"""Recurring task system — models, persistence, registration, and scheduling."""

from nudge.scheduler.engine import SchedulerEngine
from nudge.scheduler.models import (
    BatchResult,
    Cadence,
    ScheduledTaskRegistration,
    TaskReport,
    parse_interval,
)
from nudge.scheduler.registrar import RecurringTaskRegistrar
from nudge.scheduler.store import RegistrationStore, ReportStore

__all__ = [
    "BatchResult",
    "Cadence",
    "RecurringTaskRegistrar",
    "RegistrationStore",
    "ReportStore",
    "ScheduledTaskRegistration",
    "SchedulerEngine",
    "TaskReport",
    "parse_interval",
]
