"""
Cost amounts and dual-currency presentation.

This module is the single source of truth for turning upstream cost values
(numbers or decimal strings) into `CostAmount` values and for the fixed-rate
USD -> secondary currency conversion shown next to every cost.

A `CostAmount` is either `ValidAmount(Decimal)` or `UNAVAILABLE`. Invalid
input is never coerced to zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Any, Optional, Union

from costboard.shared.core.config import get_settings

TWO_PLACES = Decimal("0.01")
UNAVAILABLE_DISPLAY = "N/A"

_CURRENCY_SYMBOLS = {"USD": "$", "INR": "₹", "EUR": "€", "GBP": "£", "NGN": "₦"}


@dataclass(frozen=True, slots=True)
class ValidAmount:
    value: Decimal

    def rounded(self) -> "ValidAmount":
        return ValidAmount(round_cost(self.value))


@dataclass(frozen=True, slots=True)
class Unavailable:
    """A cost that could not be computed."""


UNAVAILABLE = Unavailable()

CostAmount = Union[ValidAmount, Unavailable]


def round_cost(value: Decimal) -> Decimal:
    """Round half-up to cents. Negative zero collapses to 0.00."""
    with localcontext() as ctx:
        # Integer digits + one carry digit + two decimals.
        ctx.prec = max(ctx.prec, value.adjusted() + 4)
        rounded = value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    if rounded.is_zero():
        return Decimal("0.00")
    return rounded


def parse_cost_amount(value: Any) -> CostAmount:
    """
    Parse a cost from any upstream/user representation.

    Accepts int, float, Decimal and decimal-formatted strings. bool, None,
    NaN/Infinity, non-numeric strings and every other type are UNAVAILABLE.
    Already-parsed CostAmount values pass through unchanged.
    """
    if isinstance(value, (ValidAmount, Unavailable)):
        return value
    # bool is an int subclass; True is not a cost.
    if isinstance(value, bool) or value is None:
        return UNAVAILABLE

    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return UNAVAILABLE
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return UNAVAILABLE
    else:
        return UNAVAILABLE

    if not parsed.is_finite():
        return UNAVAILABLE
    return ValidAmount(parsed)


def get_secondary_rate() -> Decimal:
    return get_settings().SECONDARY_CURRENCY_RATE


def to_secondary_currency(
    amount: Any, rate: Optional[Decimal | int | float | str] = None
) -> CostAmount:
    """
    Convert a USD cost into the configured secondary currency.

    `rate` overrides Settings.SECONDARY_CURRENCY_RATE for this call.
    """
    parsed = parse_cost_amount(amount)
    if isinstance(parsed, Unavailable):
        return UNAVAILABLE

    effective_rate = parse_cost_amount(rate if rate is not None else get_secondary_rate())
    if isinstance(effective_rate, Unavailable) or effective_rate.value <= 0:
        raise ValueError(f"Invalid currency conversion rate: {rate!r}")

    with localcontext() as ctx:
        # Exact product: digits of a*b never exceed digits(a) + digits(b).
        ctx.prec = max(
            ctx.prec,
            len(parsed.value.as_tuple().digits) + len(effective_rate.value.as_tuple().digits),
        )
        return ValidAmount(parsed.value * effective_rate.value)


def format_amount(amount: Any) -> str:
    """Render a cost with exactly two fractional digits, or N/A."""
    parsed = parse_cost_amount(amount)
    if isinstance(parsed, Unavailable):
        return UNAVAILABLE_DISPLAY
    return f"{round_cost(parsed.value):.2f}"


def currency_symbol(currency: str) -> str:
    code = (currency or "USD").strip().upper()
    return _CURRENCY_SYMBOLS.get(code, f"{code} ")


def format_currency(amount: Any, currency: str = "USD") -> str:
    """Symbol-prefixed display with thousands separators, e.g. ₹1,037.50."""
    parsed = parse_cost_amount(amount)
    if isinstance(parsed, Unavailable):
        return UNAVAILABLE_DISPLAY
    return f"{currency_symbol(currency)}{round_cost(parsed.value):,.2f}"
