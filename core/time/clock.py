"""
POS Core Time - Clock
=====================
Services never call datetime.now() themselves. Order stamps, shift
boundaries, kitchen send times and cache expiry all read a Clock
handed in at construction, so a test can freeze or step time.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now_utc(self) -> datetime:
        """Current time, timezone-aware, in UTC."""
        ...  # pragma: no cover


class SystemClock:
    """Wall-clock time."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Stands still until a test moves it:

        clock = FixedClock(datetime(2026, 2, 21, 9, 0, tzinfo=timezone.utc))
        clock.advance(60)   # one minute later
    """

    def __init__(self, start: datetime) -> None:
        if start.tzinfo is None:
            raise ValueError("FixedClock needs an aware datetime.")
        self._current = start.astimezone(timezone.utc)

    def now_utc(self) -> datetime:
        return self._current

    def advance(self, seconds: float) -> None:
        self._current += timedelta(seconds=seconds)

