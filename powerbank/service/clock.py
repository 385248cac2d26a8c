"""
Clocks
------

The service layer never reads the wall clock directly, instead
asking an injected clock so that tests can pin the time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        pass


class SystemClock(Clock):
    """Reads the current UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, time: datetime):
        self.time = time

    def now(self) -> datetime:
        return self.time

    def advance(self, delta: timedelta):
        self.time += delta
