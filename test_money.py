# test_money.py
from decimal import Decimal

import pytest

from tealedger.services.money import (
    D, DeductionRounding, money, percent_to_fraction, ratio, round_deduction, scratch, total,
)


def test_money_rounds_half_up():
    assert money("2.345") == Decimal("2.35")
    assert money("2.344") == Decimal("2.34")
    assert money("-2.345") == Decimal("-2.35")
    assert money(None) == Decimal("0.00")


def test_floats_do_not_leak_binary_noise():
    assert D(0.1) == Decimal("0.1")
    assert money(1.005) == Decimal("1.01")


@pytest.mark.parametrize("value, mode, expected", [
    ("4.50", DeductionRounding.HALF_UP, "5"),
    ("4.49", DeductionRounding.HALF_UP, "4"),
    ("4.01", DeductionRounding.CEILING, "5"),
    ("4.00", DeductionRounding.CEILING, "4"),
    ("4.99", DeductionRounding.FLOOR, "4"),
    ("4.567", DeductionRounding.INCLUDE_DECIMALS, "4.57"),
])
def test_round_deduction(value, mode, expected):
    assert round_deduction(value, mode) == Decimal(expected)


def test_rounding_mode_accepts_stored_names():
    assert DeductionRounding("include_decimals") is DeductionRounding.INCLUDE_DECIMALS
    with pytest.raises(ValueError):
        DeductionRounding("bankers")


def test_percent_to_fraction():
    assert percent_to_fraction("4") == Decimal("0.0400")
    assert percent_to_fraction("2.5") == Decimal("0.0250")


def test_ratio_defaults_on_zero_denominator():
    assert ratio(0, 0) == Decimal("1")
    assert ratio(5, 0, default=Decimal("0")) == Decimal("0")
    assert ratio(1, 3) == Decimal("0.333333")


def test_total_skips_absent_values():
    assert total(None, "1.50", None, Decimal("2")) == Decimal("3.50")
    assert total() == Decimal("0")


def test_scratch_keeps_four_decimals():
    assert scratch("4.49515") == Decimal("4.4952")
    assert scratch("4.0004") == Decimal("4.0004")
