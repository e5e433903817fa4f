"""
rewardpayout/payout/units.py

Conversion from display amounts to the ledger's minimal integer unit.

All arithmetic is done with decimal.Decimal in a private context; binary
floats are only ever accepted as input and go through their repr, so
0.29 stays 0.29 rather than 0.28999999999999998.
"""

import decimal
import logging
from decimal import Decimal, ROUND_FLOOR
from enum import Enum
from typing import Optional, Union

from ..errors import InvalidAmount

logger = logging.getLogger("rewardpayout.payout.units")

Number = Union[int, float, str, Decimal]

# Realistic ledger precisions (Evrmore assets 0-8, ERC-20 style tokens 18)
MAX_PRECISION = 18

# 28 digits (Decimal default) is not enough for 10**18 * large amounts
_CONTEXT = decimal.Context(prec=80, rounding=ROUND_FLOOR)

# Largest accepted amount is just under 10**MAX_AMOUNT_EXPONENT; keeps
# amount * 10**MAX_PRECISION exact in _CONTEXT
MAX_AMOUNT_EXPONENT = 40


class UnitMode(Enum):
    """
    How request amounts relate to ledger units.

    SCALED_BY_PRECISION: amounts are display units, scaled by 10**precision.
    ALREADY_MINIMAL: amounts are already minimal units; no precision lookup.
    """
    SCALED_BY_PRECISION = "scaled"
    ALREADY_MINIMAL = "minimal"

    @classmethod
    def from_string(cls, value: str) -> "UnitMode":
        """Convert string to UnitMode."""
        mapping = {
            'scaled': cls.SCALED_BY_PRECISION,
            'scaled_by_precision': cls.SCALED_BY_PRECISION,
            'decimals': cls.SCALED_BY_PRECISION,
            'minimal': cls.ALREADY_MINIMAL,
            'already_minimal': cls.ALREADY_MINIMAL,
            'raw': cls.ALREADY_MINIMAL,
        }
        normalized = value.lower().strip().replace('-', '_').replace(' ', '_')
        if normalized in mapping:
            return mapping[normalized]
        raise ValueError(
            f"Invalid unit mode: {value}. Valid options: scaled, minimal"
        )

    def __str__(self) -> str:
        return self.value


def parse_amount(value: Number) -> Decimal:
    """
    Parse a positive, finite amount.

    Raises:
        InvalidAmount: for bools, non-numeric values, NaN, infinities,
            zero, negative and out-of-range amounts
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise InvalidAmount("Amount must be a positive number")

    try:
        if isinstance(value, float):
            amount = Decimal(repr(value))
        else:
            amount = Decimal(value.strip() if isinstance(value, str) else value)
    except decimal.DecimalException:
        raise InvalidAmount("Amount must be a positive number")

    if not amount.is_finite() or amount <= 0:
        raise InvalidAmount("Amount must be a positive number")
    if amount.adjusted() >= MAX_AMOUNT_EXPONENT:
        raise InvalidAmount(f"Amount must be below 1E+{MAX_AMOUNT_EXPONENT}")

    return amount


def to_minimal_units(amount: Number, precision: int) -> int:
    """
    Compute floor(amount * 10**precision) exactly.

    Args:
        amount: Display amount (Decimal, int, str or float)
        precision: Decimal places of the asset, 0..MAX_PRECISION

    Returns:
        Amount in minimal units

    Raises:
        ValueError: for a precision outside 0..MAX_PRECISION
        InvalidAmount: if the scaled amount is out of Decimal range

    Example:
        >>> to_minimal_units(100, 6)
        100000000
    """
    if isinstance(precision, bool) or not isinstance(precision, int):
        raise ValueError(f"Precision must be an integer, got {precision!r}")
    if not 0 <= precision <= MAX_PRECISION:
        raise ValueError(f"Precision must be between 0 and {MAX_PRECISION}, got {precision}")

    if isinstance(amount, float):
        amount = Decimal(repr(amount))
    else:
        amount = Decimal(amount)

    try:
        scaled = amount.scaleb(precision, context=_CONTEXT)
        return int(scaled.to_integral_value(rounding=ROUND_FLOOR, context=_CONTEXT))
    except decimal.DecimalException:
        raise InvalidAmount(f"Amount {amount} is out of range")


def from_minimal_units(units: int, precision: int) -> Decimal:
    """Inverse of to_minimal_units, for display and for ledgers taking decimals."""
    return Decimal(units).scaleb(-precision, context=_CONTEXT)


class UnitConverter:
    """
    Converts request amounts to minimal units under a fixed UnitMode.

    The mode is decided once, at construction. In ALREADY_MINIMAL mode the
    converter is the identity and callers must not look up precision.
    """

    def __init__(self, mode: UnitMode = UnitMode.SCALED_BY_PRECISION):
        self.mode = mode

    @property
    def requires_precision(self) -> bool:
        """Whether a precision must be resolved before converting."""
        return self.mode is UnitMode.SCALED_BY_PRECISION

    def to_minimal_units(self, amount: Number, precision: Optional[int] = None) -> int:
        """
        Convert an amount to minimal units.

        Raises:
            InvalidAmount: in ALREADY_MINIMAL mode, for a fractional amount
            ValueError: in SCALED_BY_PRECISION mode, for a missing or
                out-of-range precision
        """
        if self.mode is UnitMode.ALREADY_MINIMAL:
            value = Decimal(repr(amount)) if isinstance(amount, float) else Decimal(amount)
            if value != value.to_integral_value():
                raise InvalidAmount(
                    f"Amount must be a whole number of minimal units, got {amount}"
                )
            return int(value)

        if precision is None:
            raise ValueError("Precision is required in scaled unit mode")
        return to_minimal_units(amount, precision)
