"""Idempotent recurring reminders: a notification ledger and a task registrar."""
