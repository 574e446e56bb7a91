"""Notification ledger — idempotency records for dispatched notifications."""

from nudge.ledger.ledger import NotificationLedger
from nudge.ledger.models import NotificationKey, NotificationRecord
from nudge.ledger.store import LedgerStore

__all__ = [
    "LedgerStore",
    "NotificationKey",
    "NotificationLedger",
    "NotificationRecord",
]
