"""
cashflow/forecast.py

Forward-looking cash balance projection.

Approach (explainable, deterministic):
1) Build calendar periods for the chosen granularity starting today.
2) Sum included assets into a baseline balance in the view currency.
3) Pool manual transactions, collectible checks and expanded recurring
   rules dated today or later, converting every amount to the view currency.
4) Fold the pool into the periods in chronological order, carrying a
   running balance and a per-description breakdown for drill-down.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from cashflow.calendar_utils import parse_date, to_local_ymd
from cashflow.currency import convert, require_rate
from cashflow.errors import ConfigurationError, ValidationError
from cashflow.log_utils import get_logger
from cashflow.models import (
    INCOME,
    Asset,
    Check,
    FlowPeriod,
    RecurringRule,
    Transaction,
    check_direction,
    finite_amount,
)
from cashflow.recurring import expand_rules

logger = get_logger(__name__)

DAILY_PERIODS = 46
WEEKLY_PERIODS = 12
MONTHLY_PERIODS = 6

POOL_COLUMNS = ["id", "date", "direction", "amount", "description"]


def _daily_periods(today: dt.date) -> List[FlowPeriod]:
    days = pd.date_range(today, periods=DAILY_PERIODS, freq="D")
    return [
        FlowPeriod(start=d.date(), end=d.date(), label=f"{d:%d.%m.%Y} {d.day_name()}")
        for d in days
    ]


def _weekly_periods(today: dt.date) -> List[FlowPeriod]:
    periods = []
    current = today
    for _ in range(WEEKLY_PERIODS):
        week_end = current + dt.timedelta(days=7 - current.isoweekday())
        periods.append(FlowPeriod(
            start=current,
            end=week_end,
            label=f"{current:%d.%m} - {week_end:%d.%m}",
        ))
        current = week_end + dt.timedelta(days=1)
    return periods


def _monthly_periods(today: dt.date) -> List[FlowPeriod]:
    months = pd.period_range(start=pd.Timestamp(today), periods=MONTHLY_PERIODS, freq="M")
    return [
        FlowPeriod(
            start=p.start_time.date(),
            end=p.end_time.date(),
            label=f"{p.start_time.month_name()} {p.year}",
        )
        for p in months
    ]


def build_periods(granularity: str, today: dt.date) -> List[FlowPeriod]:
    """Empty periods for `granularity`; a pure function of today."""
    builders = {
        "daily": _daily_periods,
        "weekly": _weekly_periods,
        "monthly": _monthly_periods,
    }
    if granularity not in builders:
        raise ValidationError(f"Unknown projection granularity {granularity!r}")
    return builders[granularity](today)


def _skip(issues: Optional[List[str]], record_type: str, record_id: str, error: Exception) -> None:
    logger.warning(
        f"Skipping {record_type} {record_id}: {error}",
        extra={"record_id": record_id, "record_type": record_type},
    )
    if issues is not None:
        issues.append(f"{record_type.capitalize()} {record_id} skipped: {error}")


def baseline_balance(
    assets: Iterable[Asset],
    rates: Mapping[str, float],
    view_currency: str,
    local_currency: str = "TL",
    issues: Optional[List[str]] = None,
) -> float:
    """Sum of included assets, each converted to the view currency."""
    total = 0.0
    for asset in assets or []:
        if not asset.included:
            continue
        try:
            amount = finite_amount(asset.amount, asset.id)
            total += convert(amount, asset.currency, view_currency, rates, local_currency)
        except (ValidationError, ConfigurationError) as e:
            _skip(issues, "asset", asset.id, e)
    return total


def _pool_row(
    tx: Transaction,
    today_key: str,
    rates: Mapping[str, float],
    view_currency: str,
    local_currency: str,
) -> Optional[Dict[str, Any]]:
    """One pooled row, or None when the transaction predates today."""
    date_key = to_local_ymd(parse_date(tx.date))
    if date_key < today_key:
        return None
    check_direction(tx.direction, tx.id)
    amount = finite_amount(tx.amount, tx.id)
    return {
        "id": tx.id,
        "date": date_key,
        "direction": tx.direction,
        "amount": convert(amount, tx.currency, view_currency, rates, local_currency),
        "description": "" if tx.description is None else str(tx.description),
    }


def assemble_pool(
    checks: Iterable[Check],
    manual_transactions: Iterable[Transaction],
    recurring_rules: Iterable[RecurringRule],
    rates: Mapping[str, float],
    view_currency: str,
    today: dt.date,
    window_end: dt.date,
    local_currency: str = "TL",
    check_prefix: str = "CHECK: ",
    issues: Optional[List[str]] = None,
) -> pd.DataFrame:
    """
    Every transaction dated today or later, amounts in the view currency.

    Returns a DataFrame with columns [id, date, direction, amount, description]
    where `date` is the YYYY-MM-DD key.
    """
    today_key = to_local_ymd(today)
    rows: List[Dict[str, Any]] = []

    def add(tx: Transaction, record_type: str) -> None:
        try:
            row = _pool_row(tx, today_key, rates, view_currency, local_currency)
        except (ValidationError, ConfigurationError) as e:
            _skip(issues, record_type, tx.id, e)
            return
        if row is not None:
            rows.append(row)

    for tx in manual_transactions or []:
        add(tx, "transaction")

    for check in checks or []:
        # Checks are always collected in local currency
        add(Transaction(
            id=check.id,
            direction=INCOME,
            date=check.effective_date,
            amount=check.amount,
            description=f"{check_prefix}{check.description}",
            currency=local_currency,
        ), "check")

    for tx in expand_rules(recurring_rules, today, window_end, issues=issues):
        add(tx, "recurring occurrence")

    return pd.DataFrame(rows, columns=POOL_COLUMNS)


def _aggregate(periods: List[FlowPeriod], pool: pd.DataFrame, baseline: float) -> None:
    running = baseline
    for p in periods:
        start_key, end_key = to_local_ymd(p.start), to_local_ymd(p.end)
        chunk = pool[(pool["date"] >= start_key) & (pool["date"] <= end_key)]

        is_income = chunk["direction"] == INCOME
        p.incomes = float(chunk.loc[is_income, "amount"].sum())
        p.expenses = float(chunk.loc[~is_income, "amount"].sum())

        signed = chunk["amount"].where(is_income, -chunk["amount"])
        by_desc = signed.groupby(chunk["description"], sort=False, dropna=False).sum()
        p.details = {str(desc): float(val) for desc, val in by_desc.items()}

        running += p.incomes - p.expenses
        p.balance = running


def project_flow(
    granularity: str,
    assets: Iterable[Asset],
    checks: Iterable[Check],
    manual_transactions: Iterable[Transaction],
    recurring_rules: Iterable[RecurringRule],
    rates: Mapping[str, float],
    view_currency: str,
    today: Optional[dt.date] = None,
    local_currency: str = "TL",
    check_prefix: str = "CHECK: ",
    issues: Optional[List[str]] = None,
) -> List[FlowPeriod]:
    """
    Project the running balance over calendar periods.

    Args:
        granularity: "daily" (46 periods), "weekly" (12) or "monthly" (6).
        rates: rate-to-local per foreign currency code.
        view_currency: currency every amount is reported in.
        today: the projection's "now"; defaults to the local date.
        issues: when a list, receives one message per skipped record.

    Raises:
        MissingRateError / InvalidRateError: the view currency has no usable
            rate. Rate problems for a single record's currency only skip
            that record.
        ValidationError: unknown granularity.
    """
    today = parse_date(today) if today is not None else dt.date.today()
    require_rate(view_currency, rates, local_currency)

    periods = build_periods(granularity, today)
    baseline = baseline_balance(assets, rates, view_currency, local_currency, issues=issues)
    pool = assemble_pool(
        checks,
        manual_transactions,
        recurring_rules,
        rates,
        view_currency,
        today,
        periods[-1].end,
        local_currency=local_currency,
        check_prefix=check_prefix,
        issues=issues,
    )

    _aggregate(periods, pool, baseline)
    logger.debug(
        f"Projected {len(pool)} transactions over {len(periods)} {granularity} periods "
        f"from {to_local_ymd(today)} in {view_currency}"
    )
    return periods


def forecast_flow(
    granularity: str,
    assets: Iterable[Asset],
    checks: Iterable[Check],
    manual_transactions: Iterable[Transaction],
    recurring_rules: Iterable[RecurringRule],
    rates: Mapping[str, float],
    view_currency: str,
    today: Optional[dt.date] = None,
    local_currency: str = "TL",
    check_prefix: str = "CHECK: ",
) -> Dict[str, Any]:
    """
    Project the flow and summarize it for the dashboard.

    Returns a dict with:
      - baseline, view_currency
      - periods: List[FlowPeriod]
      - metrics: min_balance, min_balance_label, first_negative_label,
                 total_incomes, total_expenses
      - issues: messages for skipped records
    """
    issues: List[str] = []
    assets = list(assets or [])
    periods = project_flow(
        granularity,
        assets,
        checks,
        manual_transactions,
        recurring_rules,
        rates,
        view_currency,
        today=today,
        local_currency=local_currency,
        check_prefix=check_prefix,
        issues=issues,
    )
    # Period 0 starts from the baseline
    baseline = periods[0].balance - periods[0].net

    lowest = min(periods, key=lambda p: p.balance)
    negative = [p for p in periods if p.balance < 0]

    return {
        "baseline": round(baseline, 2),
        "view_currency": view_currency,
        "periods": periods,
        "metrics": {
            "min_balance": round(lowest.balance, 2),
            "min_balance_label": lowest.label,
            "first_negative_label": negative[0].label if negative else None,
            "total_incomes": round(sum(p.incomes for p in periods), 2),
            "total_expenses": round(sum(p.expenses for p in periods), 2),
        },
        "issues": issues,
    }


def periods_to_frame(periods: List[FlowPeriod]) -> pd.DataFrame:
    """Tabular view of the periods for charting and display."""
    return pd.DataFrame(
        [
            {
                "start": pd.Timestamp(p.start),
                "end": pd.Timestamp(p.end),
                "label": p.label,
                "incomes": p.incomes,
                "expenses": p.expenses,
                "net": p.net,
                "balance": p.balance,
            }
            for p in periods
        ],
        columns=["start", "end", "label", "incomes", "expenses", "net", "balance"],
    )
