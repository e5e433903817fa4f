"""
Tests for rewardpayout/payout/units.py

Tests amount parsing and minimal-unit conversion.
"""

import pytest
from decimal import Decimal

from rewardpayout.errors import InvalidAmount
from rewardpayout.payout.units import (
    MAX_PRECISION,
    UnitConverter,
    UnitMode,
    from_minimal_units,
    parse_amount,
    to_minimal_units,
)


# ============================================================================
# AMOUNT PARSING
# ============================================================================

class TestParseAmount:
    """Tests for parse_amount."""

    def test_accepts_int(self):
        assert parse_amount(5) == Decimal(5)

    def test_accepts_numeric_string(self):
        assert parse_amount(" 1.25 ") == Decimal("1.25")

    def test_float_goes_through_repr(self):
        """0.29 must not become 0.28999999999999998."""
        assert parse_amount(0.29) == Decimal("0.29")

    @pytest.mark.parametrize("value", [0, -1, "0", "-0.5", Decimal("-3")])
    def test_rejects_non_positive(self, value):
        with pytest.raises(InvalidAmount):
            parse_amount(value)

    @pytest.mark.parametrize("value", ["abc", "", None, [], {}, True, False])
    def test_rejects_non_numeric(self, value):
        with pytest.raises(InvalidAmount):
            parse_amount(value)

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), "NaN", "-Infinity"])
    def test_rejects_non_finite(self, value):
        with pytest.raises(InvalidAmount):
            parse_amount(value)

    @pytest.mark.parametrize("value", ["1E+40", "1E+999995", Decimal("9.9E+99")])
    def test_rejects_out_of_range(self, value):
        with pytest.raises(InvalidAmount, match="below 1E"):
            parse_amount(value)

    def test_accepts_just_below_limit(self):
        assert parse_amount("9.99E+39") == Decimal("9.99E+39")


# ============================================================================
# CONVERSION
# ============================================================================

class TestToMinimalUnits:
    """Tests for to_minimal_units."""

    def test_reference_example(self):
        """100 tokens at 6 decimals is 100,000,000 minimal units."""
        assert to_minimal_units(100, 6) == 100_000_000

    def test_precision_zero(self):
        assert to_minimal_units(7, 0) == 7

    def test_floors_excess_digits(self):
        assert to_minimal_units(Decimal("1.999"), 2) == 199

    def test_float_input_is_exact(self):
        assert to_minimal_units(0.29, 2) == 29
        assert to_minimal_units(1.1, 8) == 110_000_000

    def test_max_precision_is_exact(self):
        amount = Decimal("123456789.123456789123456789")
        assert to_minimal_units(amount, MAX_PRECISION) == 123456789123456789123456789

    def test_large_amount_no_overflow(self):
        assert to_minimal_units(10 ** 30, 18) == 10 ** 48

    def test_exponent_overflow_is_invalid_amount(self):
        with pytest.raises(InvalidAmount, match="out of range"):
            to_minimal_units(Decimal("1E+999995"), 8)

    def test_monotonic(self):
        amounts = [Decimal("0.1"), Decimal("0.15"), Decimal("1"), Decimal("1.0000001"), Decimal("250")]
        for precision in (0, 2, 8, 18):
            converted = [to_minimal_units(a, precision) for a in amounts]
            assert converted == sorted(converted)

    @pytest.mark.parametrize("precision", [-1, MAX_PRECISION + 1])
    def test_rejects_out_of_range_precision(self, precision):
        with pytest.raises(ValueError):
            to_minimal_units(1, precision)

    def test_rejects_non_integer_precision(self):
        with pytest.raises(ValueError):
            to_minimal_units(1, 2.0)
        with pytest.raises(ValueError):
            to_minimal_units(1, True)

    def test_from_minimal_units(self):
        assert from_minimal_units(150_000_000, 8) == Decimal("1.5")
        assert from_minimal_units(7, 0) == Decimal(7)


# ============================================================================
# UNIT MODE / CONVERTER
# ============================================================================

class TestUnitMode:
    """Tests for UnitMode."""

    def test_from_string(self):
        assert UnitMode.from_string("scaled") == UnitMode.SCALED_BY_PRECISION
        assert UnitMode.from_string("Already-Minimal") == UnitMode.ALREADY_MINIMAL
        assert UnitMode.from_string(" raw ") == UnitMode.ALREADY_MINIMAL

    def test_from_string_invalid(self):
        with pytest.raises(ValueError, match="Invalid unit mode"):
            UnitMode.from_string("lamports")

    def test_str(self):
        assert str(UnitMode.ALREADY_MINIMAL) == "minimal"


class TestUnitConverter:
    """Tests for UnitConverter."""

    def test_scaled_mode(self):
        converter = UnitConverter(UnitMode.SCALED_BY_PRECISION)
        assert converter.requires_precision
        assert converter.to_minimal_units(Decimal("2.5"), 8) == 250_000_000

    def test_scaled_mode_requires_precision(self):
        converter = UnitConverter()
        with pytest.raises(ValueError):
            converter.to_minimal_units(1)

    def test_minimal_mode_is_identity(self):
        converter = UnitConverter(UnitMode.ALREADY_MINIMAL)
        assert not converter.requires_precision
        assert converter.to_minimal_units(Decimal("1500")) == 1500
        assert converter.to_minimal_units(1500, precision=6) == 1500

    def test_minimal_mode_rejects_fraction(self):
        converter = UnitConverter(UnitMode.ALREADY_MINIMAL)
        with pytest.raises(InvalidAmount):
            converter.to_minimal_units(Decimal("1.5"))
