"""Clock port, so date guards can be tested deterministically"""
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


def hotel_timezone(name: Optional[str] = None) -> tzinfo:
    return ZoneInfo(name or get_settings().timezone)


class Clock(ABC):
    tz: tzinfo = timezone.utc

    @abstractmethod
    def now(self) -> datetime:
        """Current timezone-aware UTC time"""
        raise NotImplementedError

    def today(self) -> date:
        """Calendar date at the hotel, not in UTC"""
        return self.now().astimezone(self.tz).date()


class SystemClock(Clock):

    def __init__(self, tz_name: Optional[str] = None):
        self.tz = hotel_timezone(tz_name)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock pinned to a given instant; ``advance`` moves it forward"""

    def __init__(self, fixed_time: datetime, tz_name: Optional[str] = None):
        self._fixed_time = fixed_time
        self.tz = hotel_timezone(tz_name)

    def now(self) -> datetime:
        return self._fixed_time

    def set_time(self, new_time: datetime) -> None:
        self._fixed_time = new_time

    def advance(self, **delta) -> None:
        self._fixed_time = self._fixed_time + timedelta(**delta)
