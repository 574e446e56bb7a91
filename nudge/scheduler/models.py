"""Registration, cadence, report and batch-result data models."""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, time, timedelta
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from nudge.errors import NotifyFailure
    from nudge.subjects import Subject

_INTERVAL_RE = re.compile(r"^\s*(\d+)\s*([smhdw])\s*$", re.IGNORECASE)
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}
_UNIT_NAMES = (("week", 604800), ("day", 86400), ("hour", 3600), ("minute", 60))


def parse_interval(text: str) -> timedelta:
    """Parse ``"30m"``, ``"12h"``, ``"1d"``, ``"2w"`` or ``"45s"`` into a timedelta."""
    match = _INTERVAL_RE.match(text or "")
    if not match:
        msg = f"Invalid interval: {text!r} (expected e.g. '30m', '12h', '1d')"
        raise ValueError(msg)
    amount = int(match.group(1))
    if amount <= 0:
        msg = f"Interval must be positive: {text!r}"
        raise ValueError(msg)
    return timedelta(seconds=amount * _UNIT_SECONDS[match.group(2).lower()])


def _format_interval(interval: timedelta) -> str:
    seconds = int(interval.total_seconds())
    for name, size in _UNIT_NAMES:
        if seconds % size == 0:
            count = seconds // size
            return f"{count} {name}" + ("s" if count != 1 else "")
    return f"{seconds} second" + ("s" if seconds != 1 else "")


@dataclass(frozen=True)
class Cadence:
    """When a recurring task fires.

    Attributes:
        interval: Time between firings (at least one second).
        anchor: Wall-clock time the firings align to, e.g. ``time(4, 30)``.
        timezone: IANA timezone the anchor is expressed in.
    """

    interval: timedelta
    anchor: time = time(0, 0)
    timezone: str = "UTC"

    def __post_init__(self) -> None:
        if self.interval < timedelta(seconds=1):
            msg = f"Cadence interval must be at least one second, got {self.interval}"
            raise ValueError(msg)
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            msg = f"Unknown timezone: {self.timezone!r}"
            raise ValueError(msg) from exc

    @classmethod
    def parse(cls, every: str, at: str = "00:00", timezone: str = "UTC") -> Cadence:
        """Build a cadence from strings like ``("1d", "04:30", "UTC")``."""
        try:
            anchor = time.fromisoformat(at)
        except ValueError as exc:
            msg = f"Invalid anchor time: {at!r} (expected HH:MM)"
            raise ValueError(msg) from exc
        return cls(interval=parse_interval(every), anchor=anchor, timezone=timezone)

    def trigger(self, now: datetime | None = None) -> IntervalTrigger:
        """Return an APScheduler trigger anchored on the local date of *now*."""
        now = now or datetime.now(UTC)
        local_now = now.astimezone(ZoneInfo(self.timezone))
        start = datetime.combine(local_now.date(), self.anchor)
        return IntervalTrigger(
            seconds=int(self.interval.total_seconds()),
            start_date=start,
            timezone=self.timezone,
        )

    def next_fire_time(self, now: datetime | None = None) -> datetime:
        """Return the first firing at or after *now*."""
        now = now or datetime.now(UTC)
        fire_time = self.trigger(now).get_next_fire_time(None, now)
        if fire_time is None:  # pragma: no cover - interval triggers have no end
            msg = "Cadence produced no fire time"
            raise ValueError(msg)
        return fire_time

    def describe(self) -> str:
        return f"every {_format_interval(self.interval)} at {self.anchor:%H:%M} ({self.timezone})"

    # -- Serialization ---------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "interval_seconds": int(self.interval.total_seconds()),
            "anchor": self.anchor.isoformat(),
            "timezone": self.timezone,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Cadence:
        return cls(
            interval=timedelta(seconds=int(data["interval_seconds"])),
            anchor=time.fromisoformat(data.get("anchor", "00:00:00")),
            timezone=data.get("timezone", "UTC"),
        )


@dataclass
class ScheduledTaskRegistration:
    """The single live schedule for one task name.

    Attributes:
        task_name: Unique logical name (e.g. ``"confirmation-reminder"``).
        cadence: When the task fires.
        queue_label: Which worker queue the task runs on.
        id: Unique identifier of this instance (UUID hex).  A redeploy
            produces a new registration with a new id.
        created_at: ISO 8601 timestamp.
        next_run_at: ISO 8601 timestamp of the first planned firing.
    """

    task_name: str
    cadence: Cadence
    queue_label: str = "default"
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: str = ""
    next_run_at: str | None = None

    def __post_init__(self) -> None:
        if not self.task_name:
            msg = "task_name must be non-empty"
            raise ValueError(msg)
        if not self.created_at:
            self.created_at = datetime.now(UTC).isoformat()

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``task_registrations`` column order."""
        return (
            self.id,
            self.task_name,
            json.dumps(self.cadence.to_dict()),
            self.queue_label,
            self.created_at,
            self.next_run_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> ScheduledTaskRegistration:
        """Deserialize from a SQLite row tuple."""
        return cls(
            id=row[0],
            task_name=row[1],
            cadence=Cadence.from_dict(json.loads(row[2])),
            queue_label=row[3],
            created_at=row[4],
            next_run_at=row[5],
        )


@dataclass(frozen=True)
class TaskReport:
    """Audit entry describing a successful install."""

    task_name: str
    description: str
    first_run_at: str | None
    created_at: str = ""
    registration_id: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            object.__setattr__(self, "created_at", datetime.now(UTC).isoformat())

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``task_reports`` column order."""
        return (
            self.task_name,
            self.description,
            self.first_run_at,
            self.created_at,
            self.registration_id,
        )

    @classmethod
    def from_row(cls, row: tuple) -> TaskReport:
        """Deserialize from a SQLite row tuple."""
        return cls(
            task_name=row[0],
            description=row[1] or "",
            first_run_at=row[2],
            created_at=row[3],
            registration_id=row[4] or "",
        )


@dataclass
class BatchResult:
    """What happened during one firing of a task.

    ``duplicates`` holds subjects that were notified but lost the ledger write
    to a concurrent firing, so they received the notification twice.
    """

    task_name: str
    notification_kind: str
    notified: list[Subject] = field(default_factory=list)
    skipped: list[Subject] = field(default_factory=list)
    duplicates: list[Subject] = field(default_factory=list)
    failures: list[NotifyFailure] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        text = (
            f"{self.task_name}: {len(self.notified)} notified, "
            f"{len(self.skipped)} skipped, {self.failure_count} failed"
        )
        if self.duplicates:
            text += f", {len(self.duplicates)} sent twice"
        return text
