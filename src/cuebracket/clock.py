"""Time sources for deadline computations.

All timestamps stored by cuebracket are naive UTC datetimes, matching the
``DateTime`` columns in the models.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in naive UTC."""

    def now(self) -> datetime:
        return utc_now()


class FixedClock:
    """Manually driven clock for tests and replays."""

    def __init__(self, current: datetime | None = None) -> None:
        self._current = current or datetime(2026, 1, 1, 12, 0, 0)

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        self._current = current

    def advance(self, **kwargs: float) -> datetime:
        """Move forward by a ``timedelta(**kwargs)`` and return the new time."""
        self._current = self._current + timedelta(**kwargs)
        return self._current
