"""Fixed-point helpers for currency and weight values.

Everything that is shown to a user or written to storage goes through one of
these so the rounding mode never drifts between call sites.
"""
from decimal import Decimal, ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP
from enum import Enum

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

CENTS = Decimal("0.01")
WHOLE = Decimal("1")
FRACTION_SCALE = Decimal("0.0001")
MULTIPLIER_SCALE = Decimal("0.000001")


def D(x) -> Decimal:
    """Coerce to Decimal; None becomes 0. Floats go through str to avoid binary artifacts."""
    if x is None:
        return ZERO
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x))


def money(x) -> Decimal:
    return D(x).quantize(CENTS, rounding=ROUND_HALF_UP)


def scratch(x) -> Decimal:
    """Intermediate weight value, kept at 4 decimals until a final rounding."""
    return D(x).quantize(FRACTION_SCALE, rounding=ROUND_HALF_UP)


def percent_to_fraction(pct) -> Decimal:
    return (D(pct) / HUNDRED).quantize(FRACTION_SCALE, rounding=ROUND_HALF_UP)


def ratio(numerator, denominator, default: Decimal = ONE) -> Decimal:
    den = D(denominator)
    if den == ZERO:
        return default
    return (D(numerator) / den).quantize(MULTIPLIER_SCALE, rounding=ROUND_HALF_UP)


def total(*values) -> Decimal:
    """Sum treating None as zero."""
    return sum((D(v) for v in values), ZERO)


class DeductionRounding(str, Enum):
    HALF_UP = "half_up"                    # nearest whole kg
    INCLUDE_DECIMALS = "include_decimals"  # keep 2 decimals
    CEILING = "ceiling"                    # always up to whole kg
    FLOOR = "floor"                        # always down to whole kg


def round_deduction(value, mode: DeductionRounding = DeductionRounding.HALF_UP) -> Decimal:
    value = D(value)
    if mode is DeductionRounding.INCLUDE_DECIMALS:
        return value.quantize(CENTS, rounding=ROUND_HALF_UP)
    if mode is DeductionRounding.CEILING:
        return value.quantize(WHOLE, rounding=ROUND_CEILING)
    if mode is DeductionRounding.FLOOR:
        return value.quantize(WHOLE, rounding=ROUND_FLOOR)
    return value.quantize(WHOLE, rounding=ROUND_HALF_UP)
