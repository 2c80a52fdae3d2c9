import datetime as dt

import pandas as pd
import pytest

from cashflow.calendar_utils import (
    clamp_day,
    iter_days,
    next_business_day,
    nth_weekday_of_month,
    parse_date,
    special_schedule_shift,
    to_local_ymd,
)
from cashflow.errors import DateParseError, ValidationError


def test_to_local_ymd_uses_calendar_fields():
    assert to_local_ymd(dt.date(2026, 3, 5)) == "2026-03-05"
    assert to_local_ymd(dt.datetime(2026, 3, 5, 23, 59)) == "2026-03-05"
    assert to_local_ymd(pd.Timestamp("2026-12-31 23:30")) == "2026-12-31"


def test_parse_date_accepts_common_inputs():
    assert parse_date("2026-10-21") == dt.date(2026, 10, 21)
    assert parse_date(" 2026-10-21 ") == dt.date(2026, 10, 21)
    assert parse_date(dt.datetime(2026, 10, 21, 8)) == dt.date(2026, 10, 21)
    assert parse_date(pd.Timestamp("2026-10-21")) == dt.date(2026, 10, 21)
    assert parse_date("2026-10-21T23:30:00") == dt.date(2026, 10, 21)


@pytest.mark.parametrize(
    "bad", [None, "", "   ", "not a date", "2026-13-45", pd.NaT, "2026", "05/06/2026", "21.10.2026"]
)
def test_parse_date_rejects_garbage(bad):
    with pytest.raises(DateParseError):
        parse_date(bad)


def test_date_parse_error_is_a_validation_error():
    assert issubclass(DateParseError, ValidationError)


def test_next_business_day_rolls_weekend_to_monday():
    assert next_business_day(dt.date(2026, 10, 24)) == dt.date(2026, 10, 26)  # Saturday
    assert next_business_day(dt.date(2026, 10, 25)) == dt.date(2026, 10, 26)  # Sunday
    for d in range(19, 24):
        weekday = dt.date(2026, 10, d)
        assert next_business_day(weekday) == weekday


def test_special_schedule_shift_known_week():
    expected = {
        19: 19,  # Mon stays
        20: 19,  # Tue -> Mon
        21: 19,  # Wed -> Mon
        22: 22,  # Thu stays
        23: 22,  # Fri -> Thu
        24: 26,  # Sat -> next Mon
        25: 26,  # Sun -> next Mon
    }
    for day, target in expected.items():
        assert special_schedule_shift(dt.date(2026, 10, day)) == dt.date(2026, 10, target)


def test_special_schedule_shift_depends_on_weekday_only():
    offsets = {}
    start = dt.date(2025, 12, 1)
    for i in range(120):
        day = start + dt.timedelta(days=i)
        shifted = special_schedule_shift(day)
        assert shifted.isoweekday() in (1, 4)
        offset = (shifted - day).days
        assert offsets.setdefault(day.isoweekday(), offset) == offset


def test_clamp_day_short_months():
    assert clamp_day(2026, 2, 31) == dt.date(2026, 2, 28)
    assert clamp_day(2028, 2, 31) == dt.date(2028, 2, 29)
    assert clamp_day(2026, 4, 31) == dt.date(2026, 4, 30)
    assert clamp_day(2026, 5, 31) == dt.date(2026, 5, 31)


def test_nth_weekday_of_month():
    # October 2026: Mondays 5, 12, ...; Thursdays 1, 8, 15, 22, 29
    assert nth_weekday_of_month(2026, 10, 2, 1) == dt.date(2026, 10, 12)
    assert nth_weekday_of_month(2026, 10, 4, 4) == dt.date(2026, 10, 22)
    assert nth_weekday_of_month(2026, 10, 5, 5) == dt.date(2026, 10, 30)
    # November 2026 ends on a Monday
    assert nth_weekday_of_month(2026, 11, 5, 5) == dt.date(2026, 11, 27)
    assert nth_weekday_of_month(2026, 11, 5, 1) == dt.date(2026, 11, 30)


def test_iter_days_is_inclusive_and_calendar_exact():
    days = list(iter_days(dt.date(2026, 3, 27), dt.date(2026, 3, 31)))
    assert [d.day for d in days] == [27, 28, 29, 30, 31]
    assert list(iter_days(dt.date(2026, 4, 2), dt.date(2026, 4, 1))) == []
