"""
recurring.py

Recurring rule expansion.

This module turns recurring rule definitions into concrete dated
transactions inside a projection window, e.g.:
- weekly payroll on Monday and Thursday
- rent on day 31 of every month (clamped to the month's last day)
- a supplier payment on the last Friday of every month

Occurrence ids are built from the rule id and the date, so expanding the
same rule over the same window always gives the same transactions.
"""

from __future__ import annotations

import datetime as dt
from typing import Dict, Iterable, List, Optional, Tuple

from cashflow.calendar_utils import (
    DateLike,
    clamp_day,
    iter_days,
    nth_weekday_of_month,
    parse_date,
    to_local_ymd,
)
from cashflow.errors import ValidationError
from cashflow.log_utils import get_logger
from cashflow.models import FIXED, MONTHLY, SPECIAL, WEEKLY, RecurringRule, Transaction

logger = get_logger(__name__)


def occurrence_id(rule_id: str, day: dt.date) -> str:
    return f"rec-{rule_id}-{to_local_ymd(day)}"


def _monthly_target(rule: RecurringRule, year: int, month: int) -> Optional[dt.date]:
    """The single date a monthly rule fires on in the given month, if any."""
    if rule.month_type == FIXED:
        if not rule.fixed_day:
            return None
        return clamp_day(year, month, rule.fixed_day)

    if rule.month_type == SPECIAL:
        if not rule.special_ordinal or not rule.special_weekday:
            return None
        return nth_weekday_of_month(year, month, rule.special_ordinal, rule.special_weekday)

    return None


def expand_rule(rule: RecurringRule, window_start: DateLike, window_end: DateLike) -> List[Transaction]:
    """
    Expand one rule into transactions dated within the window.

    The scan starts at max(rule start date, window start) and walks day by
    day through window_end inclusive.

    Raises:
        ValidationError: the rule is malformed (including DateParseError for
            an unparseable start date).
    """
    rule.validate()
    rule_start = parse_date(rule.start_date)
    start = max(rule_start, parse_date(window_start))
    end = parse_date(window_end)

    weekdays = set(rule.weekdays)
    month_targets: Dict[Tuple[int, int], Optional[dt.date]] = {}
    generated: List[Transaction] = []

    for day in iter_days(start, end):
        if rule.frequency == WEEKLY:
            is_match = day.isoweekday() in weekdays
        elif rule.frequency == MONTHLY:
            key = (day.year, day.month)
            if key not in month_targets:
                month_targets[key] = _monthly_target(rule, day.year, day.month)
            target = month_targets[key]
            is_match = target is not None and to_local_ymd(target) == to_local_ymd(day)
        else:
            is_match = False

        if is_match:
            generated.append(Transaction(
                id=occurrence_id(rule.id, day),
                direction=rule.direction,
                date=to_local_ymd(day),
                amount=float(rule.amount),
                description=rule.description,
                currency=rule.currency,
            ))

    return generated


def expand_rules(
    rules: Iterable[RecurringRule],
    window_start: DateLike,
    window_end: DateLike,
    issues: Optional[List[str]] = None,
) -> List[Transaction]:
    """
    Expand every rule over the window.

    A rule that fails validation is skipped and logged; when `issues` is a
    list, a description of the problem is appended to it.
    """
    generated: List[Transaction] = []
    for rule in rules or []:
        try:
            generated.extend(expand_rule(rule, window_start, window_end))
        except ValidationError as e:
            logger.warning(
                f"Skipping recurring rule {rule.id}: {e}",
                extra={"record_id": rule.id, "record_type": "recurring_rule"},
            )
            if issues is not None:
                issues.append(f"Recurring rule {rule.id} skipped: {e}")
    return generated
