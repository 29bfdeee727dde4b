"""Tests for CSS contribution calculation."""

from decimal import Decimal

from hypothesis import given, strategies as st

from factories import make_configuration, make_profile
from planilla_engine.calculators.css_calculator import (
    CssCalculator,
    classify_risk,
    determine_tier,
)
from planilla_engine.calculators.types import CssTier, RiskClass

CONFIG = make_configuration()

money = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("20000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


class TestTier:
    """Test maximum-base tier selection."""

    def test_standard_by_default(self):
        assert determine_tier(3, Decimal("900"), CONFIG) == CssTier.STANDARD

    def test_intermediate_threshold_is_inclusive(self):
        assert determine_tier(10, Decimal("1500.00"), CONFIG) == CssTier.INTERMEDIATE

    def test_high_threshold_is_inclusive(self):
        assert determine_tier(25, Decimal("2000.00"), CONFIG) == CssTier.HIGH

    def test_years_alone_are_not_enough(self):
        assert determine_tier(30, Decimal("1499.99"), CONFIG) == CssTier.STANDARD

    def test_salary_alone_is_not_enough(self):
        assert determine_tier(9, Decimal("5000"), CONFIG) == CssTier.STANDARD

    def test_high_years_with_intermediate_salary(self):
        assert determine_tier(25, Decimal("1800"), CONFIG) == CssTier.INTERMEDIATE


class TestRiskClass:
    def test_low(self):
        assert classify_risk(Decimal("0.0056"), CONFIG) == RiskClass.LOW

    def test_medium(self):
        assert classify_risk(Decimal("0.0100"), CONFIG) == RiskClass.MEDIUM
        assert classify_risk(Decimal("0.0250"), CONFIG) == RiskClass.MEDIUM

    def test_high(self):
        assert classify_risk(Decimal("0.0300"), CONFIG) == RiskClass.HIGH


class TestCssCalculator:
    """Test contribution amounts."""

    def test_below_cap(self):
        result = CssCalculator(CONFIG).calculate(Decimal("1000.00"), make_profile())

        assert result.contribution_base == Decimal("1000.00")
        assert result.employee == Decimal("97.50")
        assert result.employer == Decimal("122.50")
        assert result.risk == Decimal("5.60")
        assert result.employer_total == Decimal("128.10")
        assert result.tier == CssTier.STANDARD
        assert result.risk_class == RiskClass.LOW

    def test_standard_cap(self):
        result = CssCalculator(CONFIG).calculate(Decimal("2000.00"), make_profile())

        assert result.contribution_base == Decimal("1500.00")
        assert result.max_base == Decimal("1500.00")
        assert result.employee == Decimal("146.25")
        assert result.employer == Decimal("183.75")

    def test_intermediate_cap(self):
        profile = make_profile(years_cotized=12, average_salary_10y=Decimal("1600"))
        result = CssCalculator(CONFIG).calculate(Decimal("3000.00"), profile)

        assert result.tier == CssTier.INTERMEDIATE
        assert result.contribution_base == Decimal("2000.00")
        assert result.employee == Decimal("195.00")

    def test_high_cap(self):
        profile = make_profile(years_cotized=26, average_salary_10y=Decimal("2600"))
        result = CssCalculator(CONFIG).calculate(Decimal("3000.00"), profile)

        assert result.tier == CssTier.HIGH
        assert result.contribution_base == Decimal("2500.00")

    def test_risk_uses_position_class(self):
        profile = make_profile(risk_percentage=Decimal("0.0400"))
        result = CssCalculator(CONFIG).calculate(Decimal("1000.00"), profile)

        assert result.risk_class == RiskClass.HIGH
        assert result.risk_rate == Decimal("0.0539")
        assert result.risk == Decimal("53.90")

    def test_not_subject(self):
        profile = make_profile(subject_to_css=False)
        result = CssCalculator(CONFIG).calculate(Decimal("1000.00"), profile)

        assert result.tier == CssTier.NOT_APPLICABLE
        assert result.employee == Decimal("0")
        assert result.employer == Decimal("0")
        assert result.risk == Decimal("0")

    def test_zero_gross(self):
        result = CssCalculator(CONFIG).calculate(Decimal("0.00"), make_profile())
        assert result.employee == Decimal("0.00")

    def test_rounds_half_even(self):
        # 1001.00 x 0.0975 = 97.5975
        result = CssCalculator(CONFIG).calculate(Decimal("1001.00"), make_profile())
        assert result.employee == Decimal("97.60")


class TestCssProperties:
    @given(lower=money, upper=money)
    def test_monotone_in_gross(self, lower, upper):
        if lower > upper:
            lower, upper = upper, lower
        calculator = CssCalculator(CONFIG)
        profile = make_profile()

        assert calculator.calculate(lower, profile).employee <= calculator.calculate(upper, profile).employee

    @given(gross=money)
    def test_constant_above_cap(self, gross):
        calculator = CssCalculator(CONFIG)
        profile = make_profile()
        capped = calculator.calculate(Decimal("1500.00"), profile)

        result = calculator.calculate(gross + Decimal("1500.00"), profile)

        assert result.employee == capped.employee
        assert result.employer == capped.employer
        assert result.risk == capped.risk
