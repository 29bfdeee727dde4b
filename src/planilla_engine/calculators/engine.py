"""Per-employee payroll calculation.

Runs the pipeline for one employee:
1. Validate the pay profile
2. Attendance aggregation -> gross pay
3. CSS, educational insurance, income tax on gross
4. Non-statutory deduction waterfall
5. Assemble the detail with a deterministic calculation id

The engine does no I/O. Identical inputs give identical output, so it is safe
to run across a thread pool and to re-run on a copy of the source records.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict
from decimal import Decimal
from typing import Any, Sequence
from uuid import UUID

from planilla_engine.calculators.aggregator import CompensationAggregator
from planilla_engine.calculators.css_calculator import CssCalculator
from planilla_engine.calculators.educational_insurance import calculate_educational_insurance
from planilla_engine.calculators.income_tax import BracketNotFoundError, IncomeTaxCalculator
from planilla_engine.calculators.rounding import ZERO, round_currency
from planilla_engine.calculators.types import (
    CalculationErrorReason,
    ConsumptionClaims,
    EmployeeCalculation,
    EmployeeCalculationError,
    EmployeePayProfile,
    EmployeeSourceRecords,
    PayFrequency,
    PayPeriod,
    TaxBracket,
    TaxConfiguration,
)
from planilla_engine.config import get_settings
from planilla_engine.errors import PayrollEngineError

logger = logging.getLogger(__name__)


class InvalidProfileError(PayrollEngineError):
    """Raised when a pay profile lacks a field the calculation needs."""

    def __init__(self, employee_id: UUID, field_name: str, detail: str):
        self.employee_id = employee_id
        self.field_name = field_name
        super().__init__(f"Employee {employee_id}: invalid {field_name} ({detail})")


class PayrollEngine:
    """Calculates one employee's payroll detail from already-loaded inputs."""

    def __init__(self, engine_version: str | None = None):
        self.engine_version = engine_version or get_settings().engine_version

    def calculate_employee(
        self,
        profile: EmployeePayProfile,
        period: PayPeriod,
        configuration: TaxConfiguration,
        brackets: Sequence[TaxBracket],
        sources: EmployeeSourceRecords | None = None,
    ) -> EmployeeCalculation | EmployeeCalculationError:
        """Calculate a detail, or return a typed error for this employee."""
        sources = sources or EmployeeSourceRecords()

        try:
            self.validate_profile(profile)
        except InvalidProfileError as exc:
            return EmployeeCalculationError(
                profile.employee_id, CalculationErrorReason.INVALID_PROFILE, str(exc)
            )

        try:
            return self._calculate(profile, period, configuration, brackets, sources)
        except Exception as exc:
            # Unexpected failures stay scoped to this employee
            logger.exception("Unexpected error calculating employee %s", profile.employee_id)
            return EmployeeCalculationError(
                profile.employee_id,
                CalculationErrorReason.UNEXPECTED,
                f"Unexpected error: {exc}",
            )

    def _calculate(
        self,
        profile: EmployeePayProfile,
        period: PayPeriod,
        configuration: TaxConfiguration,
        brackets: Sequence[TaxBracket],
        sources: EmployeeSourceRecords,
    ) -> EmployeeCalculation | EmployeeCalculationError:
        aggregator = CompensationAggregator(profile, period)
        attendance = aggregator.summarize_attendance(sources)

        base_salary = round_currency(profile.base_salary)
        bonuses = ZERO
        commissions = ZERO
        gross_pay = round_currency(
            base_salary + attendance.overtime_pay + attendance.vacation_pay + bonuses + commissions
        )

        css = CssCalculator(configuration).calculate(gross_pay, profile)
        edu = calculate_educational_insurance(
            gross_pay, configuration, profile.subject_to_educational_insurance
        )

        try:
            tax = IncomeTaxCalculator(configuration, brackets).calculate(
                gross_pay,
                profile.pay_frequency,
                profile.dependents,
                eligible=profile.subject_to_income_tax,
            )
        except BracketNotFoundError as exc:
            return EmployeeCalculationError(
                profile.employee_id, CalculationErrorReason.BRACKET_NOT_FOUND, str(exc)
            )

        statutory = css.employee + edu.employee + tax.period_tax
        waterfall = aggregator.apply_deductions(
            gross_pay - statutory, gross_pay, attendance.absence_discount, sources
        )

        total_deductions = statutory + waterfall.other_deductions
        net_pay = gross_pay - total_deductions
        employer_cost = css.employer + css.risk + edu.employer

        claims = ConsumptionClaims(
            overtime_ids=attendance.overtime_ids,
            absence_ids=attendance.absence_ids,
            vacation_ids=attendance.vacation_ids,
            advance_ids=waterfall.advance_ids,
            loan_installments=waterfall.loan_claims,
        )

        return EmployeeCalculation(
            calculation_id=self._generate_calculation_id(profile, period, configuration, brackets, sources),
            employee_id=profile.employee_id,
            base_salary=base_salary,
            overtime_pay=attendance.overtime_pay,
            vacation_pay=attendance.vacation_pay,
            bonuses=bonuses,
            commissions=commissions,
            gross_pay=gross_pay,
            css_employee=css.employee,
            css_employer=css.employer,
            risk_contribution=css.risk,
            edu_employee=edu.employee,
            edu_employer=edu.employer,
            income_tax=tax.period_tax,
            absence_deduction=waterfall.absence_deduction,
            fixed_deductions=waterfall.fixed_deductions,
            loan_installments=waterfall.loan_installments,
            advances=waterfall.advances,
            other_deductions=waterfall.other_deductions,
            total_deductions=total_deductions,
            net_pay=net_pay,
            employer_cost=employer_cost,
            overtime_hours_day=attendance.overtime_hours_day,
            overtime_hours_night=attendance.overtime_hours_night,
            overtime_hours_holiday=attendance.overtime_hours_holiday,
            absence_days=attendance.absence_days,
            vacation_days=attendance.vacation_days,
            css=css,
            income_tax_detail=tax,
            deduction_lines=waterfall.lines,
            claims=claims,
        )

    @staticmethod
    def validate_profile(profile: EmployeePayProfile) -> None:
        """Reject profiles the calculators cannot work with.

        Raises:
            InvalidProfileError: On the first missing or out-of-range field.
        """
        employee_id = profile.employee_id
        if not isinstance(profile.base_salary, Decimal):
            raise InvalidProfileError(employee_id, "base_salary", "missing or not a Decimal")
        if profile.base_salary < ZERO:
            raise InvalidProfileError(employee_id, "base_salary", "negative")
        try:
            PayFrequency(profile.pay_frequency)
        except ValueError:
            raise InvalidProfileError(
                employee_id, "pay_frequency", f"unknown value {profile.pay_frequency!r}"
            ) from None
        if profile.dependents is None or profile.dependents < 0:
            raise InvalidProfileError(employee_id, "dependents", "missing or negative")
        if profile.years_cotized is None or profile.years_cotized < 0:
            raise InvalidProfileError(employee_id, "years_cotized", "missing or negative")
        if profile.average_salary_10y is None or profile.average_salary_10y < ZERO:
            raise InvalidProfileError(employee_id, "average_salary_10y", "missing or negative")
        if profile.risk_percentage is None or profile.risk_percentage < ZERO:
            raise InvalidProfileError(employee_id, "risk_percentage", "missing or negative")

    def _generate_calculation_id(
        self,
        profile: EmployeePayProfile,
        period: PayPeriod,
        configuration: TaxConfiguration,
        brackets: Sequence[TaxBracket],
        sources: EmployeeSourceRecords,
    ) -> UUID:
        """Generate deterministic calculation ID."""
        data = {
            "engine_version": self.engine_version,
            "inputs_fingerprint": self._compute_inputs_fingerprint(
                [asdict(profile), asdict(period), asdict(sources)]
            ),
            "rules_fingerprint": self._compute_rules_fingerprint(configuration, brackets),
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])

    @staticmethod
    def _compute_inputs_fingerprint(inputs_data: list[dict[str, Any]]) -> str:
        """Compute fingerprint of all inputs used in calculation."""
        json_str = json.dumps(inputs_data, sort_keys=True, default=str)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    @staticmethod
    def _compute_rules_fingerprint(
        configuration: TaxConfiguration,
        brackets: Sequence[TaxBracket],
    ) -> str:
        """Compute fingerprint of the rates and brackets used."""
        data = {
            "configuration": asdict(configuration),
            "brackets": [asdict(b) for b in sorted(brackets, key=lambda b: b.order)],
        }
        json_str = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]
