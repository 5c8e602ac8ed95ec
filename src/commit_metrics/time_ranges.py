"""Day windows for the dashboard's time-range selectors."""

import calendar
from datetime import date, timedelta
from typing import Union

from .models import DateRange, TimeRange


def subtract_month(day: date) -> date:
    """Same day of the previous month, clamped to that month's length."""
    if day.month == 1:
        year, month = day.year - 1, 12
    else:
        year, month = day.year, day.month - 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def window_for(time_range: Union[TimeRange, str], today: date) -> DateRange:
    """Inclusive day range ending today for a time-range label.

    ``week`` covers today and the six days before it, ``month`` starts on the
    same day one month earlier and ``all`` is unbounded. Unknown labels raise
    ``ValueError``.
    """
    time_range = TimeRange(time_range)
    if time_range == TimeRange.WEEK:
        return DateRange(start=today - timedelta(days=6), end=today)
    if time_range == TimeRange.MONTH:
        return DateRange(start=subtract_month(today), end=today)
    return DateRange()
