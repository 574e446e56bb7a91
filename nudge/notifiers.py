"""Notifier protocol — the interface to whatever actually delivers a message."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from nudge.subjects import Subject


@dataclass(frozen=True)
class NotificationOutcome:
    """Result of a single notify call."""

    success: bool
    detail: str = ""

    @classmethod
    def sent(cls, detail: str = "") -> NotificationOutcome:
        return cls(success=True, detail=detail)

    @classmethod
    def failed(cls, detail: str) -> NotificationOutcome:
        return cls(success=False, detail=detail)


@runtime_checkable
class Notifier(Protocol):
    """Protocol that all notifiers must satisfy.

    Returning a bare ``bool`` is accepted as shorthand for an outcome.
    Raising (including ``TimeoutError``) counts as a failed notification.
    """

    async def __call__(self, subject: Subject) -> NotificationOutcome | bool:
        ...


def as_outcome(result: NotificationOutcome | bool) -> NotificationOutcome:
    """Normalise a notifier's return value."""
    if isinstance(result, NotificationOutcome):
        return result
    if result:
        return NotificationOutcome.sent()
    return NotificationOutcome.failed("notifier reported failure")
