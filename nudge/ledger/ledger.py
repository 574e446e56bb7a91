"""NotificationLedger — at-most-one dispatch per subject and notification kind."""

from __future__ import annotations

import logging

from nudge.errors import AlreadyRecorded
from nudge.ledger.models import NotificationKey, NotificationRecord
from nudge.ledger.store import LedgerStore

logger = logging.getLogger(__name__)


def _key(subject_id: str, subject_kind: str, notification_kind: str) -> NotificationKey:
    parts = (subject_id, subject_kind, notification_kind)
    # Ids are opaque: 0 is a valid id, only None and "" are missing.
    if any(part is None or str(part) == "" for part in parts):
        msg = "subject_id, subject_kind and notification_kind must be non-empty"
        raise ValueError(msg)
    return NotificationKey(*(str(part) for part in parts))


class NotificationLedger:
    """Answers "was this subject already notified?" and records dispatches.

    The ledger never inspects subjects; ``(subject_id, subject_kind)`` is an
    opaque tagged reference.  There is no in-process locking: concurrent
    writers are arbitrated by the store's conditional insert.

    Args:
        store: LedgerStore for persistence (defaults to the shared instance).
    """

    def __init__(self, store: LedgerStore | None = None) -> None:
        self._store = store or LedgerStore.get()

    async def has_been_notified(
        self, subject_id: str, subject_kind: str, notification_kind: str
    ) -> bool:
        """Return True if a record exists for the key.

        Raises:
            StorageUnavailable: the ledger store cannot be reached.
        """
        key = _key(subject_id, subject_kind, notification_kind)
        return await self._store.find(key) is not None

    async def record_notification(
        self,
        subject_id: str,
        subject_kind: str,
        notification_kind: str,
        description: str = "",
    ) -> NotificationRecord:
        """Record that a notification was dispatched.

        Raises:
            AlreadyRecorded: a record for the key already exists.
            StorageUnavailable: the ledger store cannot be reached.
        """
        key = _key(subject_id, subject_kind, notification_kind)
        record = NotificationRecord(*key, description=description)
        if not await self._store.insert_if_absent(record):
            logger.info("Notification already recorded: %s", key)
            raise AlreadyRecorded(key)
        logger.info("Recorded notification: %s", key)
        return record

    async def history(self, subject_id: str, subject_kind: str) -> list[NotificationRecord]:
        """Return the audit trail for one subject, oldest first."""
        return await self._store.list_for_subject(str(subject_id), str(subject_kind))
