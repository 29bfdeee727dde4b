"""Social security (CSS) contribution calculation."""

from __future__ import annotations

from decimal import Decimal

from planilla_engine.calculators.rounding import ZERO, percent_of, round_currency
from planilla_engine.calculators.types import (
    CssContribution,
    CssTier,
    EmployeePayProfile,
    RiskClass,
    TaxConfiguration,
)


def classify_risk(risk_percentage: Decimal, configuration: TaxConfiguration) -> RiskClass:
    """Map a position's risk percentage onto a configured risk class.

    The configured low and medium rates double as the class ceilings.
    """
    if risk_percentage <= configuration.risk_rate_low:
        return RiskClass.LOW
    if risk_percentage <= configuration.risk_rate_medium:
        return RiskClass.MEDIUM
    return RiskClass.HIGH


def determine_tier(
    years_cotized: int,
    average_salary: Decimal,
    configuration: TaxConfiguration,
) -> CssTier:
    """Pick the maximum-base tier. Compares raw, unrounded values."""
    if (
        years_cotized >= configuration.css_high_min_years
        and average_salary >= configuration.css_high_min_avg_salary
    ):
        return CssTier.HIGH
    if (
        years_cotized >= configuration.css_intermediate_min_years
        and average_salary >= configuration.css_intermediate_min_avg_salary
    ):
        return CssTier.INTERMEDIATE
    return CssTier.STANDARD


class CssCalculator:
    """Computes employee, employer and risk CSS contributions.

    Steps:
    1. Tier from years cotized and trailing 10-year average salary
    2. contribution_base = min(gross, tier maximum base)
    3. employee / employer / risk = base x rate, each rounded once
    """

    def __init__(self, configuration: TaxConfiguration):
        self.configuration = configuration

    def calculate(self, gross_pay: Decimal, profile: EmployeePayProfile) -> CssContribution:
        if not profile.subject_to_css:
            return CssContribution.not_applicable()

        config = self.configuration
        tier = determine_tier(profile.years_cotized, profile.average_salary_10y, config)
        max_base = config.max_base_for(tier)
        base = min(max(gross_pay, ZERO), max_base)

        risk_class = classify_risk(profile.risk_percentage, config)
        risk_rate = config.risk_rate_for(risk_class)

        return CssContribution(
            contribution_base=base,
            max_base=max_base,
            tier=tier,
            risk_class=risk_class,
            risk_rate=risk_rate,
            employee=round_currency(percent_of(base, config.css_employee_rate)),
            employer=round_currency(percent_of(base, config.css_employer_rate)),
            risk=round_currency(percent_of(base, risk_rate)),
        )
