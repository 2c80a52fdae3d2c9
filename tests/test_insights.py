import datetime as dt

from cashflow.forecast import forecast_flow
from cashflow.insights import filter_periods, generate_insights, summarize_periods
from cashflow.models import FlowPeriod

from conftest import make_tx


def _period(day, label, incomes=0.0, expenses=0.0, balance=0.0, details=None):
    d = dt.date(2026, 10, day)
    return FlowPeriod(d, d, label, incomes, expenses, balance, details or {})


def test_insights_flag_negative_balance(tl_asset):
    manual = [
        make_tx("t1", "2026-10-23", 12000.0, "expense", "Payroll"),
        make_tx("t2", "2026-10-24", 500.0, "expense", "Rent"),
    ]
    result = forecast_flow("daily", [tl_asset], [], manual, [], {}, "TL", today=dt.date(2026, 10, 21))
    insights = generate_insights(result)

    assert insights[0] == "Starting cash position is 10,000.00 TL."
    assert any(i.startswith("Cash risk: balance goes negative in 23.10.2026 Friday") for i in insights)
    assert insights[-1] == "Your biggest outflow is Payroll (12,000.00 TL)."


def test_insights_without_risk(tl_asset):
    result = forecast_flow("monthly", [tl_asset], [], [], [], {}, "TL", today=dt.date(2026, 10, 21))
    insights = generate_insights(result)
    assert not any("Cash risk" in i for i in insights)
    assert "Lowest projected balance is 10,000.00 TL in October 2026." in insights


def test_insights_handle_empty_input():
    assert generate_insights({}) == []


def test_summarize_periods_keeps_active_only():
    periods = [
        _period(21, "a"),
        _period(22, "b", incomes=100.4, balance=100.4),
        _period(23, "c", expenses=50.6, balance=49.8),
    ]
    assert summarize_periods(periods) == [
        {"period": "b", "in": 100, "out": 0, "bal": 100},
        {"period": "c", "in": 0, "out": 51, "bal": 50},
    ]
    assert len(summarize_periods(periods, limit=1)) == 1


def test_filter_periods_narrows_details():
    periods = [
        _period(21, "21.10.2026 Wednesday", details={"CHECK: Acme": 100.0, "Rent": -50.0}),
        _period(22, "22.10.2026 Thursday", details={"Payroll": -10.0}),
        _period(23, "23.10.2026 Friday"),
    ]
    matched = filter_periods(periods, "acme")
    assert len(matched) == 1
    assert matched[0].details == {"CHECK: Acme": 100.0}
    assert periods[0].details == {"CHECK: Acme": 100.0, "Rent": -50.0}


def test_filter_periods_label_match_keeps_details():
    periods = [_period(22, "22.10.2026 Thursday", details={"Payroll": -10.0})]
    assert filter_periods(periods, "thursday")[0].details == {"Payroll": -10.0}


def test_filter_periods_blank_query_returns_all():
    periods = [_period(21, "x"), _period(22, "y")]
    assert filter_periods(periods, "  ") == periods
