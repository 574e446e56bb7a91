"""LedgerStore — libsql persistence for notification records."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nudge.db import get_connection
from nudge.ledger.models import NotificationKey, NotificationRecord

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS notification_records (
    subject_id TEXT NOT NULL,
    subject_kind TEXT NOT NULL,
    notification_kind TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    sent_at TEXT NOT NULL,
    PRIMARY KEY (subject_id, subject_kind, notification_kind)
)
"""

_COLUMNS = "subject_id, subject_kind, notification_kind, description, sent_at"


class LedgerStore:
    """Persists notification records in SQLite / Turso.

    Singleton accessed via ``LedgerStore.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).

    Records are insert-only.  The composite primary key makes
    :meth:`insert_if_absent` the single arbiter of "already notified".
    """

    _instance: LedgerStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @classmethod
    def get(cls) -> LedgerStore:
        """Return the shared LedgerStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self):  # noqa: ANN202
        db = await get_connection(local_path_override=self._db_path)
        if not self._initialised:
            try:
                await db.write(_CREATE_TABLE)
            except Exception:
                await db.close()
                raise
            self._initialised = True
        return db

    # -- Operations ------------------------------------------------------------

    async def insert_if_absent(self, record: NotificationRecord) -> bool:
        """Insert *record* unless its key exists. Returns True if inserted."""
        db = await self._connect()
        try:
            changed = await db.write(
                f"INSERT OR IGNORE INTO notification_records ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?)",
                record.to_row(),
            )
            inserted = changed > 0
            if inserted:
                logger.debug("Recorded notification %s", record.key)
            return inserted
        finally:
            await db.close()

    async def find(self, key: NotificationKey) -> NotificationRecord | None:
        """Fetch the record for *key*, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM notification_records "
                "WHERE subject_id = ? AND subject_kind = ? AND notification_kind = ?",
                tuple(key),
            )
            row = await cursor.fetchone()
            return NotificationRecord.from_row(row) if row else None
        finally:
            await db.close()

    async def list_for_subject(
        self, subject_id: str, subject_kind: str
    ) -> list[NotificationRecord]:
        """Return every record for one subject, oldest first."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM notification_records "
                "WHERE subject_id = ? AND subject_kind = ? ORDER BY sent_at",
                (subject_id, subject_kind),
            )
            rows = await cursor.fetchall()
            return [NotificationRecord.from_row(row) for row in rows]
        finally:
            await db.close()

    async def count(self) -> int:
        """Return the total number of records."""
        db = await self._connect()
        try:
            cursor = await db.execute("SELECT COUNT(*) FROM notification_records")
            row = await cursor.fetchone()
            return int(row[0]) if row else 0
        finally:
            await db.close()
