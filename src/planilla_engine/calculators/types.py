"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from planilla_engine.calculators.rounding import ZERO


class PayFrequency(str, Enum):
    """How often an employee is paid."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    SEMIMONTHLY = "semimonthly"
    MONTHLY = "monthly"

    @property
    def periods_per_year(self) -> int:
        return PERIODS_PER_YEAR[self]


PERIODS_PER_YEAR: dict[PayFrequency, int] = {
    PayFrequency.WEEKLY: 52,
    PayFrequency.BIWEEKLY: 26,
    PayFrequency.SEMIMONTHLY: 24,
    PayFrequency.MONTHLY: 12,
}


def periods_per_year(frequency: PayFrequency | str) -> int:
    """Number of pay periods in a year for a frequency.

    Raises ValueError for an unknown frequency.
    """
    return PayFrequency(frequency).periods_per_year


class RiskClass(str, Enum):
    """Position hazard classification."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CssTier(str, Enum):
    """Maximum contribution base tier."""

    STANDARD = "standard"
    INTERMEDIATE = "intermediate"
    HIGH = "high"
    NOT_APPLICABLE = "not_applicable"


class OvertimeCategory(str, Enum):
    """Overtime categories and their surcharge factor."""

    DAY = "day"
    NIGHT = "night"
    HOLIDAY = "holiday"
    HOLIDAY_NIGHT = "holiday_night"

    @property
    def factor(self) -> Decimal:
        return OVERTIME_FACTORS[self]


OVERTIME_FACTORS: dict[OvertimeCategory, Decimal] = {
    OvertimeCategory.DAY: Decimal("1.25"),
    OvertimeCategory.NIGHT: Decimal("1.50"),
    OvertimeCategory.HOLIDAY: Decimal("1.50"),
    OvertimeCategory.HOLIDAY_NIGHT: Decimal("1.75"),
}


class LoanStatus(str, Enum):
    ACTIVE = "active"
    PAID = "paid"
    CANCELLED = "cancelled"


# ===== Configuration =====


@dataclass(frozen=True)
class TaxConfiguration:
    """Contribution rates and thresholds effective for a date range.

    All rates are decimal fractions (0.0975 for 9.75%). The validity interval
    is half-open: ``effective_start <= d < effective_end``.
    """

    configuration_id: UUID
    tenant_id: UUID
    effective_start: date
    effective_end: date | None

    css_employee_rate: Decimal
    css_employer_rate: Decimal
    risk_rate_low: Decimal
    risk_rate_medium: Decimal
    risk_rate_high: Decimal

    css_max_base_standard: Decimal
    css_max_base_intermediate: Decimal
    css_max_base_high: Decimal
    css_intermediate_min_years: int
    css_intermediate_min_avg_salary: Decimal
    css_high_min_years: int
    css_high_min_avg_salary: Decimal

    edu_employee_rate: Decimal
    edu_employer_rate: Decimal

    dependent_deduction_amount: Decimal
    max_dependents: int

    edu_max_base: Decimal | None = None
    created_at: datetime | None = None

    def is_effective_on(self, on_date: date) -> bool:
        if on_date < self.effective_start:
            return False
        return self.effective_end is None or on_date < self.effective_end

    def max_base_for(self, tier: CssTier) -> Decimal:
        if tier == CssTier.HIGH:
            return self.css_max_base_high
        if tier == CssTier.INTERMEDIATE:
            return self.css_max_base_intermediate
        return self.css_max_base_standard

    def risk_rate_for(self, risk_class: RiskClass) -> Decimal:
        if risk_class == RiskClass.HIGH:
            return self.risk_rate_high
        if risk_class == RiskClass.MEDIUM:
            return self.risk_rate_medium
        return self.risk_rate_low


@dataclass(frozen=True)
class TaxBracket:
    """One progressive income-tax bracket (annual amounts)."""

    fiscal_year: int
    order: int
    min_income: Decimal
    max_income: Decimal | None  # None = open-ended top bracket
    rate: Decimal  # Fraction, e.g. 0.15
    fixed_amount: Decimal
    description: str | None = None

    def contains(self, taxable_income: Decimal) -> bool:
        """Half-open membership: ``min <= x < max``."""
        if taxable_income < self.min_income:
            return False
        return self.max_income is None or taxable_income < self.max_income


# ===== Employee and period =====


@dataclass(frozen=True)
class EmployeePayProfile:
    """The subset of employee data the calculators need."""

    employee_id: UUID
    base_salary: Decimal  # Per pay period
    pay_frequency: PayFrequency
    years_cotized: int = 0
    average_salary_10y: Decimal = ZERO
    dependents: int = 0
    risk_percentage: Decimal = ZERO  # Fraction, from the position
    subject_to_css: bool = True
    subject_to_educational_insurance: bool = True
    subject_to_income_tax: bool = True
    full_name: str | None = None


@dataclass(frozen=True)
class PayPeriod:
    """Inclusive period dates plus the pay date."""

    start: date
    end: date
    pay_date: date

    def contains(self, on_date: date) -> bool:
        return self.start <= on_date <= self.end

    def overlap_days(self, start: date, end: date) -> int:
        """Days of ``[start, end]`` that fall inside this period."""
        first = max(start, self.start)
        last = min(end, self.end)
        if last < first:
            return 0
        return (last - first).days + 1


# ===== Source records =====


@dataclass(frozen=True)
class OvertimeRecord:
    record_id: UUID
    employee_id: UUID
    work_date: date
    category: OvertimeCategory
    hours: Decimal
    amount: Decimal | None = None  # Already monetized upstream
    approved: bool = True
    consumed_by_detail_id: UUID | None = None


@dataclass(frozen=True)
class AbsenceRecord:
    record_id: UUID
    employee_id: UUID
    start_date: date
    end_date: date
    affects_salary: bool = True
    discount_amount: Decimal | None = None
    reason: str | None = None
    consumed_by_detail_id: UUID | None = None


@dataclass(frozen=True)
class VacationRecord:
    record_id: UUID
    employee_id: UUID
    start_date: date
    end_date: date
    payout_amount: Decimal | None = None
    approved: bool = True
    consumed_by_detail_id: UUID | None = None


@dataclass(frozen=True)
class FixedDeduction:
    """Recurring, prioritized withholding (garnishment, dues, insurance)."""

    deduction_id: UUID
    employee_id: UUID
    description: str
    start_date: date
    end_date: date | None = None
    amount: Decimal | None = None
    percentage: Decimal | None = None  # Fraction of gross
    priority: int = 100
    is_active: bool = True

    def is_effective_during(self, period: PayPeriod) -> bool:
        if not self.is_active or self.start_date > period.end:
            return False
        return self.end_date is None or self.end_date >= period.start


@dataclass(frozen=True)
class Loan:
    loan_id: UUID
    employee_id: UUID
    installment_amount: Decimal
    pending_balance: Decimal
    status: LoanStatus = LoanStatus.ACTIVE
    installments_paid: int = 0
    description: str | None = None


@dataclass(frozen=True)
class Advance:
    advance_id: UUID
    employee_id: UUID
    amount: Decimal
    discount_date: date
    approved: bool = True
    discounted: bool = False


@dataclass(frozen=True)
class EmployeeSourceRecords:
    """Unconsumed source records for one employee and period."""

    overtime: tuple[OvertimeRecord, ...] = ()
    absences: tuple[AbsenceRecord, ...] = ()
    vacations: tuple[VacationRecord, ...] = ()
    fixed_deductions: tuple[FixedDeduction, ...] = ()
    loans: tuple[Loan, ...] = ()
    advances: tuple[Advance, ...] = ()


# ===== Calculator results =====


@dataclass(frozen=True)
class CssContribution:
    contribution_base: Decimal
    max_base: Decimal
    tier: CssTier
    risk_class: RiskClass | None
    risk_rate: Decimal
    employee: Decimal
    employer: Decimal
    risk: Decimal

    @property
    def employer_total(self) -> Decimal:
        return self.employer + self.risk

    @classmethod
    def not_applicable(cls) -> CssContribution:
        return cls(
            contribution_base=ZERO,
            max_base=ZERO,
            tier=CssTier.NOT_APPLICABLE,
            risk_class=None,
            risk_rate=ZERO,
            employee=ZERO,
            employer=ZERO,
            risk=ZERO,
        )


@dataclass(frozen=True)
class EducationalInsuranceContribution:
    contribution_base: Decimal
    employee: Decimal
    employer: Decimal


@dataclass(frozen=True)
class IncomeTaxResult:
    annual_income: Decimal
    dependent_deduction: Decimal
    taxable_income: Decimal
    bracket_order: int | None
    annual_tax: Decimal
    period_tax: Decimal
    effective_rate: Decimal

    @classmethod
    def exempt(cls) -> IncomeTaxResult:
        return cls(ZERO, ZERO, ZERO, None, ZERO, ZERO, ZERO)


@dataclass(frozen=True)
class DeductionLine:
    """One applied (possibly capped) non-statutory deduction."""

    kind: str  # absence, fixed, loan, advance
    source_id: UUID | None
    description: str
    requested: Decimal
    applied: Decimal

    @property
    def was_capped(self) -> bool:
        return self.applied < self.requested


@dataclass(frozen=True)
class LoanInstallmentClaim:
    loan_id: UUID
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    installment_number: int

    @property
    def pays_off(self) -> bool:
        return self.balance_after <= ZERO


@dataclass(frozen=True)
class ConsumptionClaims:
    """Source records a detail would consume once committed."""

    overtime_ids: tuple[UUID, ...] = ()
    absence_ids: tuple[UUID, ...] = ()
    vacation_ids: tuple[UUID, ...] = ()
    advance_ids: tuple[UUID, ...] = ()
    loan_installments: tuple[LoanInstallmentClaim, ...] = ()

    def is_empty(self) -> bool:
        return not (
            self.overtime_ids
            or self.absence_ids
            or self.vacation_ids
            or self.advance_ids
            or self.loan_installments
        )


@dataclass(frozen=True)
class AttendanceSummary:
    """Gross-side attendance amounts and quantities."""

    overtime_pay: Decimal = ZERO
    vacation_pay: Decimal = ZERO
    absence_discount: Decimal = ZERO
    overtime_hours_day: Decimal = ZERO
    overtime_hours_night: Decimal = ZERO
    overtime_hours_holiday: Decimal = ZERO
    absence_days: Decimal = ZERO
    vacation_days: Decimal = ZERO
    overtime_ids: tuple[UUID, ...] = ()
    absence_ids: tuple[UUID, ...] = ()
    vacation_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class DeductionWaterfall:
    """Result of netting non-statutory deductions against a balance."""

    absence_deduction: Decimal
    fixed_deductions: Decimal
    loan_installments: Decimal
    advances: Decimal
    lines: tuple[DeductionLine, ...]
    remaining: Decimal
    loan_claims: tuple[LoanInstallmentClaim, ...] = ()
    advance_ids: tuple[UUID, ...] = ()

    @property
    def other_deductions(self) -> Decimal:
        return (
            self.absence_deduction
            + self.fixed_deductions
            + self.loan_installments
            + self.advances
        )


@dataclass(frozen=True)
class EmployeeCalculation:
    """A successfully calculated payroll detail (not yet persisted)."""

    calculation_id: UUID
    employee_id: UUID

    base_salary: Decimal
    overtime_pay: Decimal
    vacation_pay: Decimal
    bonuses: Decimal
    commissions: Decimal
    gross_pay: Decimal

    css_employee: Decimal
    css_employer: Decimal
    risk_contribution: Decimal
    edu_employee: Decimal
    edu_employer: Decimal
    income_tax: Decimal

    absence_deduction: Decimal
    fixed_deductions: Decimal
    loan_installments: Decimal
    advances: Decimal
    other_deductions: Decimal

    total_deductions: Decimal
    net_pay: Decimal
    employer_cost: Decimal

    overtime_hours_day: Decimal
    overtime_hours_night: Decimal
    overtime_hours_holiday: Decimal
    absence_days: Decimal
    vacation_days: Decimal

    css: CssContribution
    income_tax_detail: IncomeTaxResult
    deduction_lines: tuple[DeductionLine, ...]
    claims: ConsumptionClaims

    def amounts(self) -> dict[str, Decimal]:
        """Money and quantity columns, keyed by detail column name."""
        return {name: getattr(self, name) for name in DETAIL_AMOUNT_FIELDS}

    def to_canonical_dict(self) -> dict[str, Any]:
        """Canonical, deterministic representation for hashing and output."""
        data: dict[str, Any] = {
            "calculation_id": str(self.calculation_id),
            "employee_id": str(self.employee_id),
        }
        data.update({name: str(value) for name, value in self.amounts().items()})
        data["deduction_lines"] = [
            {
                "kind": line.kind,
                "source_id": str(line.source_id) if line.source_id else None,
                "requested": str(line.requested),
                "applied": str(line.applied),
            }
            for line in self.deduction_lines
        ]
        return data


DETAIL_AMOUNT_FIELDS: tuple[str, ...] = (
    "base_salary",
    "overtime_pay",
    "vacation_pay",
    "bonuses",
    "commissions",
    "gross_pay",
    "css_employee",
    "css_employer",
    "risk_contribution",
    "edu_employee",
    "edu_employer",
    "income_tax",
    "absence_deduction",
    "fixed_deductions",
    "loan_installments",
    "advances",
    "other_deductions",
    "total_deductions",
    "net_pay",
    "employer_cost",
    "overtime_hours_day",
    "overtime_hours_night",
    "overtime_hours_holiday",
    "absence_days",
    "vacation_days",
)


class CalculationErrorReason(str, Enum):
    BRACKET_NOT_FOUND = "bracket_not_found"
    INVALID_PROFILE = "invalid_profile"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class EmployeeCalculationError:
    """Typed per-employee failure; the run continues without this employee."""

    employee_id: UUID
    reason: CalculationErrorReason
    message: str


# ===== Run level =====


@dataclass
class RunTotals:
    total_gross: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_net: Decimal = ZERO
    total_employer_cost: Decimal = ZERO

    def add(self, calculation: EmployeeCalculation) -> None:
        self.total_gross += calculation.gross_pay
        self.total_deductions += calculation.total_deductions
        self.total_net += calculation.net_pay
        self.total_employer_cost += calculation.employer_cost

    @classmethod
    def from_calculations(cls, calculations: list[EmployeeCalculation]) -> RunTotals:
        totals = cls()
        for calculation in calculations:
            totals.add(calculation)
        return totals


@dataclass
class RunResult:
    """Outcome of processing a run."""

    run_id: UUID
    processed_count: int
    totals: RunTotals
    version: int
    failures: list[EmployeeCalculationError] = field(default_factory=list)

    @property
    def failed_employee_ids(self) -> list[UUID]:
        return [failure.employee_id for failure in self.failures]

    @property
    def is_complete(self) -> bool:
        """False when at least one employee was left out of the run."""
        return not self.failures
