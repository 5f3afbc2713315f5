"""
Echo - Time sources

Every time-gated check takes its "now" from a Clock passed in by the
caller, so tests can simulate day rollovers and 7-day aging.
"""

from datetime import datetime, timedelta, timezone as dt_timezone

from django.utils import timezone


class SystemClock:
    """Wall-clock time, always timezone-aware UTC."""

    def now(self):
        return timezone.now()


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, instant):
        self.set(instant)

    def now(self):
        return self._now

    def set(self, instant):
        if timezone.is_naive(instant):
            raise ValueError("FixedClock needs a timezone-aware datetime")
        self._now = instant
        return self._now

    def advance(self, **kwargs):
        self._now = self._now + timedelta(**kwargs)
        return self._now


def utc_day(instant):
    """Truncate an instant to its UTC calendar date."""
    if timezone.is_naive(instant):
        raise ValueError("utc_day needs a timezone-aware datetime")
    return instant.astimezone(dt_timezone.utc).date()


def start_of_next_utc_day(instant):
    """The first instant of the UTC day after ``instant``."""
    day = utc_day(instant) + timedelta(days=1)
    return datetime(day.year, day.month, day.day, tzinfo=dt_timezone.utc)
