"""
Unit tests for float <-> on-chain unit conversion.
"""

from decimal import Decimal

from utils.token_amounts import truncate, to_base_units, from_base_units, minimum_accepted


class TestTokenAmounts:

    def test_converted_price_truncated_not_rounded(self):
        assert to_base_units(63.333333333333336, 6) == 63_333_333

    def test_truncation_never_rounds_up(self):
        assert to_base_units(0.9999999, 6) == 999_999
        assert truncate(1.23456789, 2) == Decimal("1.23")

    def test_whole_amount(self):
        assert to_base_units(100, 6) == 100_000_000
        assert to_base_units(0.05, 18) == 50_000_000_000_000_000

    def test_from_base_units(self):
        assert from_base_units(99_950_000, 6) == Decimal("99.95")

    def test_default_tolerance_minimum(self):
        assert minimum_accepted(100_000_000, 0.1) == 99_900_000

    def test_tolerance_floors_allowance(self):
        # 0.1% of 63_333_333 is 63_333.333 -> 63_333
        assert minimum_accepted(63_333_333, 0.1) == 63_270_000

    def test_zero_tolerance(self):
        assert minimum_accepted(100_000_000, 0) == 100_000_000
