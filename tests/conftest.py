"""Pytest configuration and fixtures."""
import datetime as dt

import pytest

from cashflow.models import Asset, RecurringRule, Transaction

# A Wednesday
TODAY = dt.date(2026, 10, 21)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def rates():
    return {"EUR": 40.0, "USD": 32.0}


@pytest.fixture
def tl_asset():
    return Asset(id="a1", category="bank", name="Main account", subtype="TRY", currency="TL", amount=10000.0)


def make_tx(tx_id, date, amount, direction="expense", description="Misc", currency="TL", **kw):
    return Transaction(
        id=tx_id,
        direction=direction,
        date=date,
        amount=amount,
        description=description,
        currency=currency,
        **kw,
    )


def make_rule(rule_id="r1", **kw):
    fields = dict(
        id=rule_id,
        direction="income",
        start_date="2026-10-01",
        amount=1000.0,
        description="Rule",
        frequency="weekly",
        weekdays=[1],
    )
    fields.update(kw)
    return RecurringRule(**fields)
