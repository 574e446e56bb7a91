"""Error kinds raised by the ledger, the registrar and their stores."""

from __future__ import annotations

from typing import Any


class NudgeError(Exception):
    """Base class for all nudge errors."""


class StorageUnavailable(NudgeError):
    """The ledger or task store could not be reached.

    The operation was aborted; no partial state should be assumed committed.
    """


class Conflict(NudgeError):
    """A registration with the same task name already exists."""

    def __init__(self, task_name: str) -> None:
        super().__init__(f"Registration '{task_name}' already exists")
        self.task_name = task_name


class AlreadyRecorded(NudgeError):
    """A notification record already exists for the key.

    Expected when two writers race; callers treat it as "already sent".
    """

    def __init__(self, key: Any) -> None:
        super().__init__(f"Notification already recorded for {key}")
        self.key = key


class SchedulerUnavailable(NudgeError):
    """Installing a registration failed; the previous state is unknown."""

    def __init__(self, task_name: str, reason: str) -> None:
        super().__init__(f"Could not install '{task_name}': {reason}")
        self.task_name = task_name
        self.reason = reason


class NotifyFailure(NudgeError):
    """A single subject could not be notified during a batch firing."""

    def __init__(self, subject: Any, reason: str) -> None:
        super().__init__(f"Notify failed for {subject}: {reason}")
        self.subject = subject
        self.reason = reason
