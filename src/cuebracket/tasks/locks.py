"""Database advisory locks so only one sweep runner or generation job runs at a time."""

from __future__ import annotations

import hashlib
import logging
import time
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)


def advisory_lock_key(*parts: object) -> int:
    """Return a deterministic signed 64-bit lock key from one or more name parts."""
    name = ":".join(str(part) for part in parts)
    digest = hashlib.sha256(name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


def tournament_lock_key(tournament_id: int) -> int:
    return advisory_lock_key("cuebracket_tournament", tournament_id)


def _try_acquire(connection: Connection, key: int) -> bool:
    return bool(
        connection.execute(text("SELECT pg_try_advisory_lock(:key)"), {"key": key}).scalar()
    )


def _release(connection: Connection, key: int) -> None:
    connection.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": key})


@contextmanager
def postgres_advisory_lock(
    engine: Engine,
    *,
    key: int,
    timeout_seconds: float = 0.0,
    poll_interval_seconds: float = 1.0,
) -> Generator[bool, None, None]:
    """
    Hold a PostgreSQL session-level advisory lock for the life of this context.

    On other dialects (SQLite in development and tests) there is nothing to
    lock against, so the context yields False without touching the database.
    With ``timeout_seconds`` of zero the lock is tried exactly once.

    Yields:
        True once the lock is held, False on non-PostgreSQL engines.

    Raises:
        TimeoutError: another session still held the lock at the deadline.
    """
    if engine.dialect.name != "postgresql":
        logger.debug("Advisory locks unsupported on %s; running unlocked", engine.dialect.name)
        yield False
        return

    with engine.connect() as connection:
        deadline = time.monotonic() + max(timeout_seconds, 0.0)
        while not _try_acquire(connection, key):
            if time.monotonic() >= deadline:
                raise TimeoutError(
                    f"Advisory lock {key} still held elsewhere after {timeout_seconds:g}s"
                )
            time.sleep(max(poll_interval_seconds, 0.05))

        logger.debug("Acquired advisory lock key=%s", key)
        try:
            yield True
        finally:
            _release(connection, key)
