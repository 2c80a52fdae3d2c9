"""
insights.py

Generate human-readable insights from a projection.

This module takes the dict returned by forecast_flow and turns it into:
- short statements a user can read at a glance
- a compact period summary for a narrative/commentary collaborator
- a searchable drill-down over the per-description breakdowns
"""

from dataclasses import replace
from typing import Any, Dict, List

from cashflow.currency import format_money
from cashflow.models import FlowPeriod


def generate_insights(forecast_dict: dict) -> List[str]:
    """
    Generate human-readable insights grounded in computed stats.

    Expects forecast_dict to contain:
      - baseline (float), view_currency (str), periods (List[FlowPeriod])
      - metrics: {min_balance, min_balance_label, first_negative_label,
                  total_incomes, total_expenses}
    """
    insights = []
    forecast_dict = forecast_dict or {}
    currency = forecast_dict.get("view_currency", "TL")
    metrics = forecast_dict.get("metrics", {})
    periods = forecast_dict.get("periods") or []

    baseline = forecast_dict.get("baseline")
    if baseline is not None:
        insights.append(f"Starting cash position is {format_money(baseline, currency)}.")

    total_in = metrics.get("total_incomes")
    total_out = metrics.get("total_expenses")
    if total_in is not None and total_out is not None:
        insights.append(
            f"Projected inflows {format_money(total_in, currency)} against "
            f"outflows {format_money(total_out, currency)}."
        )

    # Cash risk
    first_negative = metrics.get("first_negative_label")
    min_bal = metrics.get("min_balance")
    if first_negative is not None:
        insights.append(
            f"Cash risk: balance goes negative in {first_negative} "
            f"(lowest projected balance {format_money(min_bal, currency)} in {metrics.get('min_balance_label')})."
        )
    elif min_bal is not None:
        insights.append(
            f"Lowest projected balance is {format_money(min_bal, currency)} in {metrics.get('min_balance_label')}."
        )

    # Biggest outflow driver across the horizon
    totals: Dict[str, float] = {}
    for p in periods:
        for desc, amount in p.details.items():
            totals[desc] = totals.get(desc, 0.0) + amount
    outflows = {desc: amt for desc, amt in totals.items() if amt < 0}
    if outflows:
        biggest = min(outflows, key=outflows.get)
        insights.append(f"Your biggest outflow is {biggest} ({format_money(-outflows[biggest], currency)}).")

    return insights


def summarize_periods(periods: List[FlowPeriod], limit: int = 30) -> List[Dict[str, Any]]:
    """Periods with any activity, rounded to whole units, at most `limit` rows."""
    active = [p for p in periods if p.incomes > 0 or p.expenses > 0]
    return [
        {
            "period": p.label,
            "in": round(p.incomes),
            "out": round(p.expenses),
            "bal": round(p.balance),
        }
        for p in active[:limit]
    ]


def filter_periods(periods: List[FlowPeriod], query: str) -> List[FlowPeriod]:
    """
    Keep periods whose label or any detail description contains `query`.

    When some descriptions match, the returned period's details are narrowed
    to those; a label-only match keeps all details. Input periods are not
    modified.
    """
    if not query or not query.strip():
        return list(periods)
    q = query.strip().lower()

    out = []
    for p in periods:
        matched = {desc: amt for desc, amt in p.details.items() if q in desc.lower()}
        if matched:
            out.append(replace(p, details=matched))
        elif q in p.label.lower():
            out.append(replace(p, details=dict(p.details)))
    return out
