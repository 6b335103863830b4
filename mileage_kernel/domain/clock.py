"""
Clock -- injectable time source for the voucher workflow.

``submitted_at`` on a voucher and ``acted_at`` on a history row are always
taken from a ``Clock`` handed to the service, never from ``datetime.now()``
inline, so tests can order approvals deterministically.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Returns timezone-aware UTC datetimes."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.  ``now()`` only moves when ``advance()`` is called.

    Starts at noon UTC on 1 March 2025 unless told otherwise.
    """

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 1) -> datetime:
        """Move forward by ``seconds`` and return the new time."""
        self._now += timedelta(seconds=seconds)
        return self._now
