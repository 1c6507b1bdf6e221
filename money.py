"""Integer minor-unit arithmetic and formatting.

Every amount in the application is an ``int`` count of cents. ``Decimal`` is
only used on the way in (parsing) and for half-up rounding.
"""

from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from models import TransactionKind

Number = Union[int, float, Decimal]

_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "CAD": "CA$",
    "MXN": "MX$",
    "JPY": "¥",
    "AUD": "A$",
}

# Currencies rendered without minor digits.
_ZERO_DECIMAL = {"JPY"}

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def round_half_up(value: Number) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_div(numerator: int, denominator: int) -> int:
    """Divide and round to the nearest integer, halves toward +infinity."""
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    return (2 * numerator + denominator) // (2 * denominator)


def clamp_cents(value: Number) -> int:
    return max(0, round_half_up(value))


def parse_currency_to_cents(value: str) -> int:
    sanitized = _NON_NUMERIC.sub("", value or "")
    try:
        amount = Decimal(sanitized)
    except InvalidOperation:
        return 0
    if not amount.is_finite():
        return 0
    return round_half_up(amount * 100)


def coerce_cents(value: object) -> int:
    """Best-effort conversion of a raw amount to non-negative cents.

    Garbage becomes ``0`` instead of an error so that one bad row cannot take
    a dashboard down.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 0
        return clamp_cents(value)
    if isinstance(value, Decimal):
        return clamp_cents(value) if value.is_finite() else 0
    if isinstance(value, str):
        # A string is a whole cents count, never a decimal currency string.
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            return 0
        return clamp_cents(amount) if amount.is_finite() else 0
    return 0


def cents_to_units(cents: int) -> int:
    return round_div(cents, 100)


def format_currency(amount_cents: int, currency: str = "USD") -> str:
    code = str(getattr(currency, "value", currency) or "USD").upper()
    symbol = _SYMBOLS.get(code, f"{code} ")
    sign = "-" if amount_cents < 0 else ""
    if code in _ZERO_DECIMAL:
        body = f"{round_div(abs(amount_cents), 100):,}"
    else:
        body = f"{Decimal(abs(amount_cents)) / 100:,.2f}"
    return f"{sign}{symbol}{body}"


def format_signed_currency(
    amount_cents: int, kind: TransactionKind, currency: str = "USD"
) -> str:
    sign = "-" if kind == TransactionKind.expense else "+"
    return f"{sign}{format_currency(amount_cents, currency)}"
