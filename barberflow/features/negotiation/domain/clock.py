"""
Time sources for the negotiation engine.

Every deadline comparison goes through a Clock so expiry behavior can be
driven with synthetic time in tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FrozenClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime):
        if start.tzinfo is None:
            start = start.replace(tzinfo=UTC)
        self._now = start

    def now(self) -> datetime:
        return self._now

    def set(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=UTC)
        self._now = moment

    def advance(self, **kwargs) -> datetime:
        """Move forward by a timedelta given as keyword args (minutes=5, seconds=1, ...)."""
        self._now = self._now + timedelta(**kwargs)
        return self._now


system_clock = SystemClock()
