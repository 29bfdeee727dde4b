"""Attendance and ad-hoc compensation aggregation.

Pure functions over an employee's unconsumed source records. Nothing here
mutates a record; what would be consumed is returned as ids and loan claims,
and the run commit stamps them.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from planilla_engine.calculators.rounding import (
    ZERO,
    cap,
    percent_of,
    round_currency,
    round_quantity,
)
from planilla_engine.calculators.types import (
    AbsenceRecord,
    Advance,
    AttendanceSummary,
    DeductionLine,
    DeductionWaterfall,
    EmployeePayProfile,
    EmployeeSourceRecords,
    FixedDeduction,
    LoanInstallmentClaim,
    LoanStatus,
    OvertimeCategory,
    OvertimeRecord,
    PayPeriod,
    VacationRecord,
    periods_per_year,
)

# Legal work month used to derive an hourly rate: 48 h/week x 4.33 weeks
HOURS_PER_MONTH = Decimal("48") * Decimal("4.33")
DAYS_PER_MONTH = Decimal("30")


class SalaryRates:
    """Monthly, daily and hourly equivalents of a per-period base salary."""

    def __init__(self, profile: EmployeePayProfile):
        periods = periods_per_year(profile.pay_frequency)
        self.monthly = profile.base_salary * periods / 12
        self.daily = round_currency(self.monthly / DAYS_PER_MONTH)
        self.hourly = round_currency(self.monthly / HOURS_PER_MONTH)


class CompensationAggregator:
    """Collects one employee's attendance amounts and non-statutory deductions."""

    def __init__(self, profile: EmployeePayProfile, period: PayPeriod):
        self.profile = profile
        self.period = period
        self.rates = SalaryRates(profile)

    # ----- gross side -----

    def summarize_attendance(self, sources: EmployeeSourceRecords) -> AttendanceSummary:
        """Overtime and vacation payouts, plus the absence discount to withhold."""
        overtime = self._eligible_overtime(sources.overtime)
        absences = self._eligible_absences(sources.absences)
        vacations = self._eligible_vacations(sources.vacations)

        overtime_pay = ZERO
        hours = {category: ZERO for category in OvertimeCategory}
        for record in overtime:
            overtime_pay += self._overtime_amount(record)
            hours[record.category] += record.hours

        absence_discount = ZERO
        absence_days = ZERO
        for record in absences:
            days = Decimal(self.period.overlap_days(record.start_date, record.end_date))
            absence_days += days
            if record.discount_amount is not None:
                absence_discount += record.discount_amount
            else:
                absence_discount += days * self.rates.daily

        vacation_pay = ZERO
        vacation_days = ZERO
        for record in vacations:
            days = Decimal(self.period.overlap_days(record.start_date, record.end_date))
            vacation_days += days
            if record.payout_amount is not None:
                vacation_pay += record.payout_amount
            else:
                vacation_pay += days * self.rates.daily

        return AttendanceSummary(
            overtime_pay=round_currency(overtime_pay),
            vacation_pay=round_currency(vacation_pay),
            absence_discount=round_currency(absence_discount),
            overtime_hours_day=round_quantity(hours[OvertimeCategory.DAY]),
            overtime_hours_night=round_quantity(hours[OvertimeCategory.NIGHT]),
            overtime_hours_holiday=round_quantity(
                hours[OvertimeCategory.HOLIDAY] + hours[OvertimeCategory.HOLIDAY_NIGHT]
            ),
            absence_days=round_quantity(absence_days),
            vacation_days=round_quantity(vacation_days),
            overtime_ids=tuple(r.record_id for r in overtime),
            absence_ids=tuple(r.record_id for r in absences),
            vacation_ids=tuple(r.record_id for r in vacations),
        )

    def _overtime_amount(self, record: OvertimeRecord) -> Decimal:
        if record.amount is not None:
            return record.amount
        return self.rates.hourly * record.hours * record.category.factor

    def _eligible_overtime(self, records: Sequence[OvertimeRecord]) -> list[OvertimeRecord]:
        return [
            r for r in records
            if r.approved
            and r.consumed_by_detail_id is None
            and self.period.contains(r.work_date)
        ]

    def _eligible_absences(self, records: Sequence[AbsenceRecord]) -> list[AbsenceRecord]:
        return [
            r for r in records
            if r.affects_salary
            and r.consumed_by_detail_id is None
            and self.period.overlap_days(r.start_date, r.end_date) > 0
        ]

    def _eligible_vacations(self, records: Sequence[VacationRecord]) -> list[VacationRecord]:
        return [
            r for r in records
            if r.approved
            and r.consumed_by_detail_id is None
            and self.period.overlap_days(r.start_date, r.end_date) > 0
        ]

    # ----- deduction side -----

    def apply_deductions(
        self,
        available: Decimal,
        gross_pay: Decimal,
        absence_discount: Decimal,
        sources: EmployeeSourceRecords,
    ) -> DeductionWaterfall:
        """Net non-statutory deductions against what is left after statutory ones.

        Order: absence discount, fixed deductions by ascending priority, loan
        installments, advances. Each step takes at most the remaining balance so
        net pay never goes below zero. An advance is taken whole or deferred.
        """
        remaining = max(available, ZERO)
        lines: list[DeductionLine] = []

        absence_applied = cap(absence_discount, remaining)
        remaining -= absence_applied
        if absence_discount > ZERO:
            lines.append(
                DeductionLine("absence", None, "Unjustified absences", absence_discount, absence_applied)
            )

        fixed_total = ZERO
        for deduction in self._effective_fixed_deductions(sources.fixed_deductions):
            requested = self._fixed_deduction_amount(deduction, gross_pay)
            applied = cap(requested, remaining)
            remaining -= applied
            fixed_total += applied
            lines.append(
                DeductionLine("fixed", deduction.deduction_id, deduction.description, requested, applied)
            )

        loan_total = ZERO
        loan_claims: list[LoanInstallmentClaim] = []
        for loan in sources.loans:
            if loan.status != LoanStatus.ACTIVE or loan.pending_balance <= ZERO:
                continue
            requested = min(loan.installment_amount, loan.pending_balance)
            applied = cap(requested, remaining)
            lines.append(
                DeductionLine("loan", loan.loan_id, loan.description or "Loan installment", requested, applied)
            )
            if applied <= ZERO:
                continue
            remaining -= applied
            loan_total += applied
            loan_claims.append(
                LoanInstallmentClaim(
                    loan_id=loan.loan_id,
                    amount=applied,
                    balance_before=loan.pending_balance,
                    balance_after=loan.pending_balance - applied,
                    installment_number=loan.installments_paid + 1,
                )
            )

        advance_total = ZERO
        advance_ids = []
        for advance in self._due_advances(sources.advances):
            applied = advance.amount if advance.amount <= remaining else ZERO
            lines.append(DeductionLine("advance", advance.advance_id, "Salary advance", advance.amount, applied))
            if applied <= ZERO:
                continue
            remaining -= applied
            advance_total += applied
            advance_ids.append(advance.advance_id)

        return DeductionWaterfall(
            absence_deduction=absence_applied,
            fixed_deductions=fixed_total,
            loan_installments=loan_total,
            advances=advance_total,
            lines=tuple(lines),
            remaining=remaining,
            loan_claims=tuple(loan_claims),
            advance_ids=tuple(advance_ids),
        )

    def _effective_fixed_deductions(self, deductions: Sequence[FixedDeduction]) -> list[FixedDeduction]:
        active = [d for d in deductions if d.is_effective_during(self.period)]
        # Stable sort: equal priorities keep provider order
        return sorted(active, key=lambda d: d.priority)

    @staticmethod
    def _fixed_deduction_amount(deduction: FixedDeduction, gross_pay: Decimal) -> Decimal:
        if deduction.amount is not None:
            return round_currency(deduction.amount)
        if deduction.percentage is not None:
            return round_currency(percent_of(gross_pay, deduction.percentage))
        return ZERO

    def _due_advances(self, advances: Sequence[Advance]) -> list[Advance]:
        return [
            a for a in advances
            if a.approved
            and not a.discounted
            and a.amount > ZERO
            and self.period.contains(a.discount_date)
        ]

