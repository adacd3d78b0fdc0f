from decimal import Decimal

import pytest

from costboard.shared.core.currency import (
    UNAVAILABLE,
    ValidAmount,
    currency_symbol,
    format_amount,
    format_currency,
    parse_cost_amount,
    round_cost,
    to_secondary_currency,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("123.45", Decimal("123.45")),
        (" 7.5 ", Decimal("7.5")),
        (100, Decimal("100")),
        (0.1, Decimal("0.1")),
        (Decimal("-4.20"), Decimal("-4.20")),
        ("1E+2", Decimal("1E+2")),
    ],
)
def test_parse_cost_amount_accepts_numbers_and_numeric_strings(raw, expected):
    assert parse_cost_amount(raw) == ValidAmount(expected)


@pytest.mark.parametrize(
    "raw", ["abc", "", "   ", None, True, False, "NaN", "Infinity", float("nan"), [], {}]
)
def test_parse_cost_amount_never_coerces_garbage_to_zero(raw):
    """Invalid input is UNAVAILABLE, never a silent 0."""
    assert parse_cost_amount(raw) is UNAVAILABLE


def test_parse_cost_amount_passes_parsed_values_through():
    amount = ValidAmount(Decimal("3"))
    assert parse_cost_amount(amount) is amount
    assert parse_cost_amount(UNAVAILABLE) is UNAVAILABLE


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("123.456", "123.46"),
        ("123.454", "123.45"),
        ("0.005", "0.01"),
        ("2.675", "2.68"),
        ("-0.001", "0.00"),
        ("-1.005", "-1.01"),
    ],
)
def test_round_cost_is_half_up(raw, expected):
    assert str(round_cost(Decimal(raw))) == expected


def test_to_secondary_currency_uses_configured_rate():
    """Default rate is 83 INR per USD."""
    assert format_amount(to_secondary_currency(100)) == "8300.00"
    assert format_amount(to_secondary_currency("12.50")) == "1037.50"
    assert format_amount(to_secondary_currency(0)) == "0.00"


def test_to_secondary_currency_rate_override():
    assert to_secondary_currency("10", rate=Decimal("1.5")) == ValidAmount(Decimal("15.0"))
    assert format_amount(to_secondary_currency("10", rate="0.92")) == "9.20"


def test_to_secondary_currency_propagates_unavailable():
    assert to_secondary_currency("abc") is UNAVAILABLE
    assert to_secondary_currency(None) is UNAVAILABLE


@pytest.mark.parametrize("rate", [0, -1, "abc", "NaN"])
def test_to_secondary_currency_rejects_bad_rate(rate):
    with pytest.raises(ValueError):
        to_secondary_currency(10, rate=rate)


def test_format_amount_always_two_fraction_digits():
    assert format_amount(ValidAmount(Decimal("5"))) == "5.00"
    assert format_amount("0.1") == "0.10"
    assert format_amount(UNAVAILABLE) == "N/A"
    assert format_amount("garbage") == "N/A"


def test_large_amounts_keep_every_digit():
    """Values past the default 28-digit context still format, never crash."""
    assert format_amount(to_secondary_currency("1E+27")) == "83" + "0" * 27 + ".00"
    assert format_amount("123456789012345678901234567890.125") == (
        "123456789012345678901234567890.13"
    )
    assert str(round_cost(Decimal("9" * 40 + ".999"))) == "1" + "0" * 40 + ".00"
    assert format_currency("1E+27") == "$1," + ",".join(["000"] * 9) + ".00"


def test_format_currency_symbols_and_separators():
    assert format_currency("1037.5", "INR") == "₹1,037.50"
    assert format_currency(1234567.891) == "$1,234,567.89"
    assert format_currency("5", "jpy") == "JPY 5.00"
    assert format_currency(None, "INR") == "N/A"


def test_currency_symbol_defaults_to_usd():
    assert currency_symbol("") == "$"
    assert currency_symbol(" inr ") == "₹"
