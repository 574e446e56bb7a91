"""NotificationRecord data model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import NamedTuple


class NotificationKey(NamedTuple):
    """Identity of a notification: one per subject and notification kind."""

    subject_id: str
    subject_kind: str
    notification_kind: str

    def __str__(self) -> str:
        return f"{self.subject_kind}:{self.subject_id}/{self.notification_kind}"


@dataclass(frozen=True)
class NotificationRecord:
    """Audit entry proving a notification was dispatched.

    Attributes:
        subject_id: Opaque identifier of the notified subject.
        subject_kind: Tag naming what kind of subject it is (``"user"``).
        notification_kind: Tag naming the reminder type
            (``"confirmation_reminder"``).
        description: Free text for humans reading the audit trail.
        sent_at: ISO 8601 timestamp (UTC).
    """

    subject_id: str
    subject_kind: str
    notification_kind: str
    description: str = ""
    sent_at: str = ""

    def __post_init__(self) -> None:
        if not self.sent_at:
            object.__setattr__(self, "sent_at", datetime.now(UTC).isoformat())

    @property
    def key(self) -> NotificationKey:
        return NotificationKey(self.subject_id, self.subject_kind, self.notification_kind)

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``notification_records`` column order."""
        return (
            self.subject_id,
            self.subject_kind,
            self.notification_kind,
            self.description,
            self.sent_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> NotificationRecord:
        """Deserialize from a SQLite row tuple."""
        return cls(
            subject_id=row[0],
            subject_kind=row[1],
            notification_kind=row[2],
            description=row[3] or "",
            sent_at=row[4],
        )
