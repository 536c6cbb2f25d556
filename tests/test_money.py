"""
Tests for money helpers
"""
from decimal import Decimal

from commerce.services.money import (
    divide,
    format_money,
    percent,
    round_money,
    to_decimal,
    to_float,
)


def test_to_decimal_handles_floats_via_str():
    assert to_decimal(0.1) + to_decimal(0.2) == Decimal("0.3")


def test_to_decimal_invalid_and_none_are_zero():
    assert to_decimal(None) == Decimal("0")
    assert to_decimal("not-a-number") == Decimal("0")


def test_round_money_half_up():
    assert round_money("2.005") == Decimal("2.01")
    assert round_money("2.004") == Decimal("2.00")


def test_divide_by_zero_returns_zero():
    assert divide(10, 0) == Decimal("0")


def test_percent():
    assert percent(120, 10) == Decimal("12")


def test_format_money():
    assert format_money("1234.5") == "$1,234.50"
    assert format_money(3, "EUR") == "€3.00"
    assert format_money(3, "CHF") == "3.00 CHF"


def test_to_float():
    assert to_float(Decimal("13.20")) == 13.2
