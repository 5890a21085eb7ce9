"""
US equity market hours, ignoring holidays.

The market runs on Eastern time, 9:30am to 4pm, Monday to Friday.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

EASTERN = ZoneInfo("America/New_York")

# Midnight back to the previous 4pm close
_CLOSE_TO_MIDNIGHT = timedelta(hours=8)
_DAY = timedelta(days=1)

MONDAY, SATURDAY, SUNDAY = 0, 5, 6


def _eastern(t: datetime) -> datetime:
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    return t.astimezone(EASTERN)


def time_since_midnight(t: datetime) -> timedelta:
    """
    Time elapsed since midnight of t's own day, in t's own timezone.

    Measured in UTC, so a DST change since midnight is accounted for.
    """
    midnight = t.replace(hour=0, minute=0, second=0, microsecond=0)
    if t.tzinfo is None:
        return t - midnight
    return t.astimezone(timezone.utc) - midnight.astimezone(timezone.utc)


def in_trading_hours(t: datetime) -> bool:
    """True if the market is open at time t."""
    et = _eastern(t)

    if et.weekday() in (SATURDAY, SUNDAY):
        return False

    if et.hour < 9 or (et.hour == 9 and et.minute < 30) or et.hour >= 16:
        return False

    return True


def time_since_close(t: datetime) -> timedelta:
    """
    Time between the most recent market close and t.

    Naive datetimes are taken to be UTC.
    """
    et = _eastern(t)
    weekday = et.weekday()
    since_midnight = time_since_midnight(et)

    if weekday == MONDAY and et.hour < 16:
        # Friday's close
        return _CLOSE_TO_MIDNIGHT + 2 * _DAY + since_midnight

    if weekday == SUNDAY:
        # Friday's close
        return _CLOSE_TO_MIDNIGHT + _DAY + since_midnight

    if weekday == SATURDAY or et.hour < 16:
        # Yesterday's close
        return _CLOSE_TO_MIDNIGHT + since_midnight

    # The market has closed today
    return since_midnight - timedelta(hours=16)


def is_stale(quote_time: datetime, now: datetime, grace: timedelta) -> bool:
    """
    True if a quote is older than the last close allows.

    A quote taken at the previous close is fine; anything older than
    time_since_close(now) + grace is not.
    """
    return now - quote_time > time_since_close(now) + grace


def previous_weekday(weekday: int, today: Optional[date] = None) -> date:
    """Most recent date (strictly before today) falling on weekday (Monday=0)."""
    today = today or date.today()
    days_back = (today.weekday() - weekday) % 7 or 7
    return today - timedelta(days=days_back)


def previous_trading_day(today: Optional[date] = None) -> date:
    """Most recent weekday strictly before today."""
    today = today or date.today()
    day = today - timedelta(days=1)
    while day.weekday() in (SATURDAY, SUNDAY):
        day -= timedelta(days=1)
    return day
