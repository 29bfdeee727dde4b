"""Educational insurance contribution."""

from __future__ import annotations

from decimal import Decimal

from planilla_engine.calculators.rounding import ZERO, percent_of, round_currency
from planilla_engine.calculators.types import (
    EducationalInsuranceContribution,
    TaxConfiguration,
)


def calculate_educational_insurance(
    gross_pay: Decimal,
    configuration: TaxConfiguration,
    eligible: bool = True,
) -> EducationalInsuranceContribution:
    """Flat-rate contribution on gross, capped only if the configuration says so."""
    if not eligible:
        return EducationalInsuranceContribution(ZERO, ZERO, ZERO)

    base = max(gross_pay, ZERO)
    if configuration.edu_max_base is not None:
        base = min(base, configuration.edu_max_base)

    return EducationalInsuranceContribution(
        contribution_base=base,
        employee=round_currency(percent_of(base, configuration.edu_employee_rate)),
        employer=round_currency(percent_of(base, configuration.edu_employer_rate)),
    )
