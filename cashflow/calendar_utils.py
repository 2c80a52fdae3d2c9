"""
calendar_utils.py

Date helpers shared by the recurrence expander and the flow projector.

All range and equality checks in the engine compare "YYYY-MM-DD" strings
built from local calendar fields, never UTC instants.
"""

from __future__ import annotations

import calendar
import datetime as dt
import re
from typing import Optional, Union

import pandas as pd

from cashflow.errors import DateParseError

DateLike = Union[dt.date, dt.datetime, pd.Timestamp, str]

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")

# Offsets indexed by ISO weekday (Mon=1 .. Sun=7)
_BUSINESS_DAY_SHIFT = {6: 2, 7: 1}
_SPECIAL_SCHEDULE_SHIFT = {1: 0, 2: -1, 3: -2, 4: 0, 5: -1, 6: 2, 7: 1}


def to_local_ymd(value: Union[dt.date, dt.datetime, pd.Timestamp]) -> str:
    """Canonical YYYY-MM-DD key from the value's own calendar fields."""
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def parse_date(value: DateLike) -> dt.date:
    """
    Coerce a record's date field into a `datetime.date`.

    Raises:
        DateParseError: for None, empty strings, strings that do not start
            with a "YYYY-MM-DD" date, and impossible dates.
    """
    if value is None or value is pd.NaT:
        raise DateParseError("Date is empty")
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    text = str(value).strip()
    if not text:
        raise DateParseError("Date is empty")
    if not _ISO_DATE.match(text):
        raise DateParseError(f"Not an ISO date: {value!r}")

    ts = pd.to_datetime(text, format="ISO8601", errors="coerce")
    if pd.isna(ts):
        raise DateParseError(f"Unparseable date: {value!r}")
    return ts.date()


def next_business_day(day: dt.date) -> dt.date:
    """Saturday and Sunday roll forward to Monday; weekdays are unchanged."""
    return day + dt.timedelta(days=_BUSINESS_DAY_SHIFT.get(day.isoweekday(), 0))


def special_schedule_shift(day: dt.date) -> dt.date:
    """
    Normalize a collection date to the nearest collectible day (Bosch rule).

    Thursday and Friday collect on Thursday; every other day collects on a
    Monday (Tue/Wed move back, Sat/Sun move forward).
    """
    return day + dt.timedelta(days=_SPECIAL_SCHEDULE_SHIFT[day.isoweekday()])


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_day(year: int, month: int, day: int) -> dt.date:
    """Clamp day-of-month to the valid last day of month."""
    return dt.date(year, month, min(max(1, int(day)), days_in_month(year, month)))


def nth_weekday_of_month(year: int, month: int, ordinal: int, weekday: int) -> Optional[dt.date]:
    """
    Resolve "the Nth <weekday>" of a month.

    ordinal 1..4 counts forward from day 1; ordinal 5 means the last such
    weekday in the month. weekday is ISO (Mon=1). Returns None when the month
    has fewer than `ordinal` occurrences.
    """
    last = days_in_month(year, month)

    if ordinal == 5:
        last_date = dt.date(year, month, last)
        for k in range(7):
            candidate = last_date - dt.timedelta(days=k)
            if candidate.isoweekday() == weekday:
                return candidate
        return None

    count = 0
    for d in range(1, last + 1):
        candidate = dt.date(year, month, d)
        if candidate.isoweekday() == weekday:
            count += 1
            if count == ordinal:
                return candidate
    return None


def iter_days(start: dt.date, end: dt.date):
    """Yield each calendar day from start through end inclusive."""
    end_key = to_local_ymd(end)
    day = start
    while to_local_ymd(day) <= end_key:
        yield day
        day += dt.timedelta(days=1)
