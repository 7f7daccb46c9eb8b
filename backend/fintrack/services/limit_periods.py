"""Recurring budget windows anchored on user preferences.

Windows are inclusive on both ends: the start is midnight of the anchor day and
the end is the last microsecond of the day before the next cycle begins. Time
zone handling follows the reference value: naive stays naive, aware keeps its
``tzinfo``.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta

from .limit_errors import UnsupportedPeriodError
from .limit_models import Instant, PeriodWindow, UserPeriodPreferences


def as_datetime(moment: Instant) -> datetime:
    """Promote a plain date to midnight of that day; datetimes pass through."""
    if isinstance(moment, datetime):
        return moment
    return datetime.combine(moment, time.min)


def _start_of_day(day: date, reference: datetime) -> datetime:
    return datetime.combine(day, time.min, tzinfo=reference.tzinfo)


def _end_of_day(day: date, reference: datetime) -> datetime:
    return datetime.combine(day, time.max, tzinfo=reference.tzinfo)


def day_of_week(day: date) -> int:
    """Weekday with 0 = Sunday through 6 = Saturday."""
    return day.isoweekday() % 7


def shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    absolute_index = (year * 12 + (month - 1)) + offset
    next_year, month_zero_based = divmod(absolute_index, 12)
    return next_year, month_zero_based + 1


def anchor_day(year: int, month: int, anchor: int) -> date:
    # Anchors past the end of a short month clamp to its last day (31 -> Feb 28).
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor, last_day))


def weekly_window(reference: Instant, weekly_start_day: int) -> PeriodWindow:
    moment = as_datetime(reference)
    days_from_anchor = (day_of_week(moment) - weekly_start_day + 7) % 7
    start_day = moment.date() - timedelta(days=days_from_anchor)
    return PeriodWindow(
        period_start=_start_of_day(start_day, moment),
        period_end=_end_of_day(start_day + timedelta(days=6), moment),
    )


def monthly_window(reference: Instant, monthly_start_date: int) -> PeriodWindow:
    moment = as_datetime(reference)
    year, month = moment.year, moment.month

    if moment.day >= anchor_day(year, month, monthly_start_date).day:
        start_year, start_month = year, month
    else:
        start_year, start_month = shift_month(year, month, -1)

    next_year, next_month = shift_month(start_year, start_month, 1)
    start_day = anchor_day(start_year, start_month, monthly_start_date)
    next_start_day = anchor_day(next_year, next_month, monthly_start_date)

    return PeriodWindow(
        period_start=_start_of_day(start_day, moment),
        period_end=_end_of_day(next_start_day - timedelta(days=1), moment),
    )


def period_boundaries(period: str, reference: Instant, preferences: UserPeriodPreferences) -> PeriodWindow:
    if period == "week":
        return weekly_window(reference, preferences.weekly_start_day)
    if period == "month":
        return monthly_window(reference, preferences.monthly_start_date)
    raise UnsupportedPeriodError(period)
