"""Calendar helpers shared by the repositories and the analytics layer.

All arithmetic goes through ``dateutil.relativedelta`` so month and year steps
clamp to the last valid day (Jan 31 + 1 month is Feb 28/29) instead of
drifting by a fixed number of days. Datetimes are naive local time.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta

from dateutil.relativedelta import relativedelta


def start_of_day(dt: datetime | date) -> datetime:
    d = dt.date() if isinstance(dt, datetime) else dt
    return datetime.combine(d, time.min)


def end_of_day(dt: datetime | date) -> datetime:
    d = dt.date() if isinstance(dt, datetime) else dt
    return datetime.combine(d, time.max)


def start_of_month(dt: datetime | date) -> datetime:
    return datetime(dt.year, dt.month, 1)


def end_of_month(dt: datetime | date) -> datetime:
    last = calendar.monthrange(dt.year, dt.month)[1]
    return datetime.combine(date(dt.year, dt.month, last), time.max)


def start_of_week(dt: datetime | date) -> datetime:
    """Monday 00:00 of the ISO week containing ``dt``."""

    day = start_of_day(dt)
    return day - timedelta(days=day.weekday())


def add_months(dt: datetime, months: int) -> datetime:
    return dt + relativedelta(months=months)


def month_label(dt: datetime | date) -> str:
    return f"{dt.year:04d}-{dt.month:02d}"


def inclusive_days(start: datetime | date, end: datetime | date) -> int:
    """Number of calendar days in ``[start, end]``, counting both ends."""

    s = start.date() if isinstance(start, datetime) else start
    e = end.date() if isinstance(end, datetime) else end
    return max((e - s).days + 1, 0)


__all__ = [
    "add_months",
    "end_of_day",
    "end_of_month",
    "inclusive_days",
    "month_label",
    "start_of_day",
    "start_of_month",
    "start_of_week",
]
