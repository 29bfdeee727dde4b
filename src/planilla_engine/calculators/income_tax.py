"""Progressive income tax (ISR) using ordered annual brackets."""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from planilla_engine.calculators.rounding import ZERO, round_currency
from planilla_engine.calculators.types import (
    IncomeTaxResult,
    PayFrequency,
    TaxBracket,
    TaxConfiguration,
    periods_per_year,
)
from planilla_engine.errors import PayrollEngineError


class BracketNotFoundError(PayrollEngineError):
    """Raised when no bracket contains the taxable income."""

    def __init__(self, taxable_income: Decimal, fiscal_year: int | None = None):
        self.taxable_income = taxable_income
        self.fiscal_year = fiscal_year
        where = f" for fiscal year {fiscal_year}" if fiscal_year is not None else ""
        super().__init__(f"No tax bracket contains taxable income {taxable_income}{where}")


def find_bracket(brackets: Sequence[TaxBracket], taxable_income: Decimal) -> TaxBracket:
    """Linear scan in ascending ``order`` for the ``[min, max)`` match.

    A value exactly on a boundary belongs to the higher bracket.
    """
    for bracket in sorted(brackets, key=lambda b: b.order):
        if bracket.contains(taxable_income):
            return bracket
    fiscal_year = brackets[0].fiscal_year if brackets else None
    raise BracketNotFoundError(taxable_income, fiscal_year)


def validate_brackets(brackets: Sequence[TaxBracket]) -> list[str]:
    """Check a bracket set for gaps, overlaps and a misplaced open top.

    Returns a list of human-readable problems (empty when the set is sound).
    """
    issues: list[str] = []
    if not brackets:
        return ["bracket set is empty"]

    ordered = sorted(brackets, key=lambda b: b.order)
    for expected, bracket in enumerate(ordered, start=1):
        if bracket.order != expected:
            issues.append(f"bracket order {bracket.order} found where {expected} expected")
            break

    open_ended = [b for b in ordered if b.max_income is None]
    if len(open_ended) != 1:
        issues.append(f"expected exactly one open-ended bracket, found {len(open_ended)}")
    elif open_ended[0] is not ordered[-1]:
        issues.append(f"open-ended bracket {open_ended[0].order} is not the last bracket")

    for lower, upper in zip(ordered, ordered[1:]):
        if lower.max_income is None:
            continue
        if lower.max_income < upper.min_income:
            issues.append(
                f"gap between bracket {lower.order} (max {lower.max_income}) "
                f"and bracket {upper.order} (min {upper.min_income})"
            )
        elif lower.max_income > upper.min_income:
            issues.append(
                f"bracket {lower.order} (max {lower.max_income}) overlaps "
                f"bracket {upper.order} (min {upper.min_income})"
            )

    for bracket in ordered:
        if bracket.max_income is not None and bracket.max_income <= bracket.min_income:
            issues.append(f"bracket {bracket.order} has max_income <= min_income")

    return issues


class IncomeTaxCalculator:
    """Annualize, subtract dependents, look up the bracket, de-annualize.

    annual_tax = fixed_amount + (taxable - bracket.min_income) * rate
    period_tax = round(annual_tax / periods_per_year)
    """

    def __init__(self, configuration: TaxConfiguration, brackets: Sequence[TaxBracket]):
        self.configuration = configuration
        self.brackets = list(brackets)

    def dependent_deduction(self, dependents: int) -> Decimal:
        counted = min(max(dependents, 0), self.configuration.max_dependents)
        return counted * self.configuration.dependent_deduction_amount

    def calculate(
        self,
        period_gross: Decimal,
        pay_frequency: PayFrequency | str,
        dependents: int = 0,
        eligible: bool = True,
    ) -> IncomeTaxResult:
        """Compute the period's income tax.

        Raises:
            BracketNotFoundError: If the bracket set has no matching interval.
            ValueError: If the pay frequency is unknown.
        """
        if not eligible:
            return IncomeTaxResult.exempt()

        periods = periods_per_year(pay_frequency)
        annual_income = period_gross * periods
        deduction = self.dependent_deduction(dependents)
        taxable = max(ZERO, annual_income - deduction)

        bracket = find_bracket(self.brackets, taxable)
        annual_tax = bracket.fixed_amount + (taxable - bracket.min_income) * bracket.rate
        period_tax = round_currency(annual_tax / periods)

        effective_rate = ZERO
        if annual_income > ZERO:
            effective_rate = (annual_tax / annual_income).quantize(Decimal("0.0001"))

        return IncomeTaxResult(
            annual_income=annual_income,
            dependent_deduction=deduction,
            taxable_income=taxable,
            bracket_order=bracket.order,
            annual_tax=round_currency(annual_tax),
            period_tax=period_tax,
            effective_rate=effective_rate,
        )
