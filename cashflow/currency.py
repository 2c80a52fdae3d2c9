"""
currency.py

Currency conversion against a table of rates-to-local.

`rates` maps a foreign currency code to how many local units one unit of
that currency buys (e.g. {"EUR": 36.5} with TL as local). Conversions
between two foreign currencies pivot through the local currency.
"""

from __future__ import annotations

from typing import Mapping

import numpy as np

from cashflow.errors import InvalidRateError, MissingRateError, ValidationError


def require_rate(currency: str, rates: Mapping[str, float], local_currency: str = "TL") -> float:
    """Return the validated rate-to-local for `currency` (1.0 for local)."""
    if currency == local_currency:
        return 1.0
    if rates is None or currency not in rates or rates[currency] is None:
        raise MissingRateError(currency)

    try:
        rate = float(rates[currency])
    except (TypeError, ValueError):
        raise InvalidRateError(currency, rates[currency])
    if not np.isfinite(rate) or rate <= 0:
        raise InvalidRateError(currency, rate)
    return rate


def convert(
    amount: float,
    from_currency: str,
    to_currency: str,
    rates: Mapping[str, float],
    local_currency: str = "TL",
) -> float:
    """
    Convert `amount` from one currency to another.

    Raises:
        MissingRateError: a needed rate is absent.
        InvalidRateError: a needed rate is zero, negative or not finite.
        ValidationError: the amount itself is not finite.
    """
    amount = float(amount)
    if not np.isfinite(amount):
        raise ValidationError(f"Amount is not finite: {amount!r}")
    if from_currency == to_currency:
        return amount

    local_amount = amount * require_rate(from_currency, rates, local_currency)
    return local_amount / require_rate(to_currency, rates, local_currency)


def format_money(amount: float, currency: str = "TL") -> str:
    return f"{amount:,.2f} {currency}"
