"""Async database connection abstraction over libsql.

Provides a thin async wrapper around the synchronous ``libsql`` driver using
``asyncio.to_thread()``.  Connection target is determined by settings:

- **Production**: ``TURSO_DATABASE_URL`` + ``TURSO_AUTH_TOKEN`` → remote Turso
- **Dev/test**: no Turso env vars → local SQLite file via ``database_path``

Driver errors are re-raised as :class:`~nudge.errors.StorageUnavailable` so
callers never depend on libsql's exception types.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import libsql

if TYPE_CHECKING:
    from pathlib import Path

from nudge.config import settings
from nudge.errors import StorageUnavailable


class _AsyncCursor:
    """Thin async wrapper around a synchronous libsql cursor."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    async def fetchone(self) -> tuple | None:
        return await _call(self._cursor.fetchone)

    async def fetchall(self) -> list[tuple]:
        return await _call(self._cursor.fetchall)

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount


class _AsyncConnection:
    """Thin async wrapper around a synchronous libsql connection."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    async def execute(self, sql: str, params: tuple = ()) -> _AsyncCursor:
        cursor = await _call(self._conn.execute, sql, params)
        return _AsyncCursor(cursor)

    async def write(self, sql: str, params: tuple = ()) -> int:
        """Run a single write statement and commit it. Returns rows changed.

        Statement and commit run in one thread hop so no transaction stays
        open across an ``await``.
        """
        return await _call(self._write, sql, params)

    def _write(self, sql: str, params: tuple) -> int:
        cursor = self._conn.execute(sql, params)
        self._conn.commit()
        return cursor.rowcount

    async def commit(self) -> None:
        await _call(self._conn.commit)

    async def close(self) -> None:
        await _call(self._conn.close)


async def _call(fn: Any, *args: Any) -> Any:
    """Run a blocking driver call in a thread, translating driver errors."""
    try:
        return await asyncio.to_thread(fn, *args)
    except Exception as exc:
        msg = f"Database operation failed: {exc}"
        raise StorageUnavailable(msg) from exc


def _open_local(path: str) -> Any:
    """Open an autocommit libsql connection with busy timeout and WAL mode."""
    conn = libsql.connect(path, isolation_level=None)
    conn.execute("PRAGMA busy_timeout=5000")
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


async def get_connection(local_path_override: Path | None = None) -> _AsyncConnection:
    """Return an async-wrapped libsql connection.

    If *local_path_override* is given (test isolation), it takes priority.
    Otherwise, ``TURSO_DATABASE_URL`` triggers a remote connection, and
    ``database_path`` falls back to a local file.
    """
    if local_path_override:
        local_path_override.parent.mkdir(parents=True, exist_ok=True)
        conn = await _call(_open_local, str(local_path_override))
        return _AsyncConnection(conn)

    if settings.turso_database_url:
        conn = await _call(_open_remote)
        return _AsyncConnection(conn)

    # Local file fallback
    settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    conn = await _call(_open_local, str(settings.database_path))
    return _AsyncConnection(conn)


def _open_remote() -> Any:
    return libsql.connect(
        database=settings.turso_database_url,
        auth_token=settings.turso_auth_token,
        isolation_level=None,
    )
