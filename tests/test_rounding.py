"""Tests for the rounding and currency policy."""

from decimal import Decimal

import pytest

from planilla_engine.calculators.rounding import (
    cap,
    percent_of,
    round_currency,
    round_quantity,
    to_decimal,
)


class TestRoundCurrency:
    """Banker's rounding to cents."""

    @pytest.mark.parametrize(
        "amount,expected",
        [
            ("0.125", "0.12"),
            ("0.135", "0.14"),
            ("2.675", "2.68"),
            ("2.665", "2.66"),
            ("-1.005", "-1.00"),
            ("97.5", "97.50"),
            ("10", "10.00"),
        ],
    )
    def test_half_even(self, amount, expected):
        assert round_currency(Decimal(amount)) == Decimal(expected)

    def test_result_has_two_places(self):
        assert round_currency(Decimal("3")).as_tuple().exponent == -2

    def test_accepts_int_and_str(self):
        assert round_currency(5) == Decimal("5.00")
        assert round_currency("1.115") == Decimal("1.12")

    def test_rejects_float(self):
        with pytest.raises(TypeError):
            round_currency(0.1)

    def test_rejects_bool(self):
        with pytest.raises(TypeError):
            to_decimal(True)


class TestRoundQuantity:
    def test_hours_and_days(self):
        assert round_quantity(Decimal("7.125")) == Decimal("7.12")
        assert round_quantity(Decimal("1.5")) == Decimal("1.50")


class TestHelpers:
    def test_percent_of_is_unrounded(self):
        assert percent_of(Decimal("1000.05"), Decimal("0.0975")) == Decimal("97.504875")

    def test_cap(self):
        assert cap(Decimal("50"), Decimal("30")) == Decimal("30")
        assert cap(Decimal("20"), Decimal("30")) == Decimal("20")
        assert cap(Decimal("20"), Decimal("0")) == Decimal("0")
        assert cap(Decimal("-5"), Decimal("30")) == Decimal("0")
