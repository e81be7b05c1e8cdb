"""Injectable clock so services never read the wall clock directly"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo


class Clock(ABC):
    """Time source. ``now()`` is timezone-aware UTC; ``today()`` is the local business date."""

    def __init__(self, tz: tzinfo = timezone.utc):
        self.tz = tz

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().astimezone(self.tz).date()


class SystemClock(Clock):
    """Production clock backed by the system time"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock frozen at a given instant until moved with ``advance()`` or ``set()``"""

    def __init__(self, fixed_time: datetime, tz: tzinfo = timezone.utc):
        super().__init__(tz)
        if fixed_time.tzinfo is None:
            fixed_time = fixed_time.replace(tzinfo=timezone.utc)
        self._now = fixed_time

    def now(self) -> datetime:
        return self._now

    def set(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        self._now = moment

    def advance(self, **delta) -> None:
        self._now = self._now + timedelta(**delta)
