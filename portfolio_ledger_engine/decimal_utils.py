"""Exact decimal helpers.

Every monetary amount and quantity in the engine is a ``decimal.Decimal``.
Floats are only accepted at the edges and are converted through their
shortest ``repr`` so no binary rounding error is carried into a ledger value.
"""

from __future__ import annotations

import numbers
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext
from typing import Any, Iterable, Optional

from portfolio_ledger_engine import config


ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

# Precision used for intermediate division (cost per share, Modified Dietz).
_DIVISION_CONTEXT = Context(prec=34)


def to_decimal(value: Any, *, field: str = "value") -> Decimal:
    """Convert ``value`` to ``Decimal`` without passing through binary floating point.

    Raises ``ValueError`` for ``None``, empty strings, NaN/infinity and
    anything that cannot be parsed as a number.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"{field}: boolean is not a numeric amount")
    elif isinstance(value, numbers.Integral):
        result = Decimal(int(value))
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            raise ValueError(f"{field}: empty string is not a numeric amount")
        try:
            result = Decimal(text)
        except InvalidOperation as exc:
            raise ValueError(f"{field}: cannot parse {value!r} as a decimal") from exc
    elif value is None:
        raise ValueError(f"{field}: missing numeric amount")
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"{field}: cannot parse {value!r} as a decimal") from exc

    if not result.is_finite():
        raise ValueError(f"{field}: non-finite amount {value!r}")
    return result


def optional_decimal(value: Any, *, field: str = "value") -> Optional[Decimal]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return to_decimal(value, field=field)


def decimal_to_str(value: Decimal) -> str:
    """Serialize a Decimal to a plain (non-exponent) string that parses back exactly."""
    if not isinstance(value, Decimal):
        value = to_decimal(value)
    if value == 0 and value.is_signed():
        value = abs(value)
    return format(value, "f")


def decimal_from_str(text: str) -> Decimal:
    return to_decimal(text, field="serialized decimal")


def quantize_money(value: Decimal, places: Optional[int] = None) -> Decimal:
    """Round a money amount half-up to ``places`` decimals (default from config)."""
    if places is None:
        places = config.MONEY_DECIMAL_PLACES
    exponent = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)


def safe_divide(numerator: Decimal, denominator: Decimal, default: Decimal = ZERO) -> Decimal:
    if denominator == 0:
        return default
    with localcontext(_DIVISION_CONTEXT):
        return numerator / denominator


def decimal_sum(values: Iterable[Decimal]) -> Decimal:
    total = ZERO
    for value in values:
        total += value
    return total


def to_percent(numerator: Decimal, denominator: Decimal) -> float:
    """``numerator / denominator * 100`` as a plain float; 0.0 when the denominator is zero."""
    if denominator == 0:
        return 0.0
    return float(safe_divide(numerator, denominator) * HUNDRED)
