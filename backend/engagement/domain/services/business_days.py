"""
Business Day Helpers
Callback date arithmetic used by the outcome resolver
"""
from datetime import date, datetime, time, timedelta
from typing import Optional

from engagement.domain.models.job_schedule import parse_hhmm

SATURDAY = 5
SUNDAY = 6


def at_time(day: date, at: time, tzinfo) -> datetime:
    """Combine a calendar day and a time-of-day in the given timezone."""
    naive = datetime.combine(day, at.replace(second=0, microsecond=0))
    if tzinfo is None:
        return naive
    if hasattr(tzinfo, "localize"):
        # pytz zones must localize to pick the right UTC offset for that date
        return tzinfo.localize(naive)
    return naive.replace(tzinfo=tzinfo)


def shift_off_weekend(day: date) -> date:
    """Saturday moves forward two days, Sunday one; weekdays are unchanged."""
    if day.weekday() == SATURDAY:
        return day + timedelta(days=2)
    if day.weekday() == SUNDAY:
        return day + timedelta(days=1)
    return day


def next_business_day(now: datetime, hour: int = 10) -> datetime:
    """Tomorrow at `hour`:00, moved to Monday when tomorrow is a weekend."""
    day = shift_off_weekend(now.date() + timedelta(days=1))
    return at_time(day, time(hour, 0), now.tzinfo)


def days_out_at(now: datetime, days: int, hhmm: str, skip_weekend: bool = False) -> datetime:
    """Calendar date `days` after now at the given HH:MM."""
    day = now.date() + timedelta(days=days)
    if skip_weekend:
        day = shift_off_weekend(day)
    return at_time(day, parse_hhmm(hhmm), now.tzinfo)


def fallback_callback(
    now: datetime,
    reschedule_start_time: Optional[str],
    offset_days: int = 2,
    fallback_hour: int = 10
) -> datetime:
    """
    Default "try again later" date.

    With a reschedule start time configured the callback lands `offset_days`
    out at that time of day, otherwise on the next business day at
    `fallback_hour`.
    """
    if reschedule_start_time:
        return days_out_at(now, offset_days, reschedule_start_time)
    return next_business_day(now, hour=fallback_hour)
