"""RegistrationStore and ReportStore — libsql persistence for the registrar."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nudge.db import get_connection
from nudge.errors import Conflict
from nudge.scheduler.models import ScheduledTaskRegistration, TaskReport

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_REGISTRATIONS = """
CREATE TABLE IF NOT EXISTS task_registrations (
    id TEXT PRIMARY KEY,
    task_name TEXT NOT NULL UNIQUE,
    cadence TEXT NOT NULL,
    queue_label TEXT NOT NULL,
    created_at TEXT NOT NULL,
    next_run_at TEXT
)
"""

_CREATE_REPORTS = """
CREATE TABLE IF NOT EXISTS task_reports (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    task_name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    first_run_at TEXT,
    created_at TEXT NOT NULL,
    registration_id TEXT NOT NULL DEFAULT ''
)
"""

_REGISTRATION_COLUMNS = "id, task_name, cadence, queue_label, created_at, next_run_at"
_REPORT_COLUMNS = "task_name, description, first_run_at, created_at, registration_id"


class _Store:
    """Shared connection handling: one connection per call, lazy table creation."""

    _create_sql = ""

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    async def _connect(self):  # noqa: ANN202
        db = await get_connection(local_path_override=self._db_path)
        if not self._initialised:
            try:
                await db.write(self._create_sql)
            except Exception:
                await db.close()
                raise
            self._initialised = True
        return db


class RegistrationStore(_Store):
    """Persists the live registration for each task name.

    The UNIQUE constraint on ``task_name`` is the source of truth for
    "exactly one registration per name"; rows are never updated in place.

    Singleton accessed via ``RegistrationStore.get()``.  Pass an explicit
    *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance: RegistrationStore | None = None
    _create_sql = _CREATE_REGISTRATIONS

    @classmethod
    def get(cls) -> RegistrationStore:
        """Return the shared RegistrationStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    async def insert_unique(self, registration: ScheduledTaskRegistration) -> None:
        """Insert *registration*. Raises Conflict if the task name exists."""
        db = await self._connect()
        try:
            changed = await db.write(
                f"INSERT OR IGNORE INTO task_registrations ({_REGISTRATION_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                registration.to_row(),
            )
            if changed == 0:
                raise Conflict(registration.task_name)
            logger.info(
                "Added registration: %s (%s)", registration.task_name, registration.id
            )
        finally:
            await db.close()

    async def delete_by_name(self, task_name: str) -> int:
        """Delete every registration named *task_name*. Returns rows removed."""
        db = await self._connect()
        try:
            removed = await db.write(
                "DELETE FROM task_registrations WHERE task_name = ?", (task_name,)
            )
            if removed:
                logger.info("Removed %d registration(s) for %s", removed, task_name)
            return removed
        finally:
            await db.close()

    async def find_by_name(self, task_name: str) -> ScheduledTaskRegistration | None:
        """Fetch the registration for *task_name*, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_REGISTRATION_COLUMNS} FROM task_registrations "
                "WHERE task_name = ?",
                (task_name,),
            )
            row = await cursor.fetchone()
            return ScheduledTaskRegistration.from_row(row) if row else None
        finally:
            await db.close()

    async def list_registrations(self) -> list[ScheduledTaskRegistration]:
        """Return all registrations ordered by task name."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_REGISTRATION_COLUMNS} FROM task_registrations "
                "ORDER BY task_name"
            )
            rows = await cursor.fetchall()
            return [ScheduledTaskRegistration.from_row(row) for row in rows]
        finally:
            await db.close()


class ReportStore(_Store):
    """Append-only store of task reports.

    Singleton accessed via ``ReportStore.get()``.
    """

    _instance: ReportStore | None = None
    _create_sql = _CREATE_REPORTS

    @classmethod
    def get(cls) -> ReportStore:
        """Return the shared ReportStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    async def append(self, report: TaskReport) -> TaskReport:
        """Append a report. Returns the same report object."""
        db = await self._connect()
        try:
            await db.write(
                f"INSERT INTO task_reports ({_REPORT_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                report.to_row(),
            )
            return report
        finally:
            await db.close()

    async def list_for_task(self, task_name: str) -> list[TaskReport]:
        """Return every report for *task_name*, oldest first."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_REPORT_COLUMNS} FROM task_reports "
                "WHERE task_name = ? ORDER BY id",
                (task_name,),
            )
            rows = await cursor.fetchall()
            return [TaskReport.from_row(row) for row in rows]
        finally:
            await db.close()
