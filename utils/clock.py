from datetime import date, datetime, timedelta
from typing import Optional

import pytz

import config

# Timestamps are persisted as naive UTC. "Today" (guest visit windows, trends)
# is evaluated in the site timezone.
SITE_TZ = pytz.timezone(config.SITE_TIMEZONE)


class Clock:
    """Time source for the allocation engine and its derived durations."""

    def __init__(self, timezone_name: Optional[str] = None):
        self.tz = pytz.timezone(timezone_name) if timezone_name else SITE_TZ

    def now(self) -> datetime:
        """Current instant as naive UTC"""
        return datetime.now(pytz.utc).replace(tzinfo=None)

    def today(self) -> date:
        """Calendar date at the site"""
        return self.to_site_time(self.now()).date()

    def to_site_time(self, dt: datetime) -> datetime:
        """Converts a stored (naive UTC) or aware datetime to site time"""
        if dt.tzinfo is None:
            return pytz.utc.localize(dt).astimezone(self.tz)
        return dt.astimezone(self.tz)


class SystemClock(Clock):
    pass


class FrozenClock(Clock):
    """Clock pinned to a fixed instant; advance() moves it forward."""

    def __init__(self, instant: datetime, timezone_name: Optional[str] = None):
        super().__init__(timezone_name)
        if instant.tzinfo is not None:
            instant = instant.astimezone(pytz.utc).replace(tzinfo=None)
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def advance(self, **kwargs) -> datetime:
        self._instant = self._instant + timedelta(**kwargs)
        return self._instant


_default_clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency returning the process clock"""
    return _default_clock


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.strftime("%Y-%m-%d %H:%M:%S")
