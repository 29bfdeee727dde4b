"""Source records the aggregator consumes.

Each consumable row carries ``consumed_by_detail_id``; it is set once, at
run commit, by a check-and-set that only matches unconsumed rows.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from planilla_engine.calculators.types import (
    AbsenceRecord,
    Advance,
    FixedDeduction,
    Loan,
    LoanStatus,
    OvertimeCategory,
    OvertimeRecord,
    VacationRecord,
)
from planilla_engine.models.base import MONEY, RATE, Base, TimestampMixin


class OvertimeEntry(Base, TimestampMixin):
    __tablename__ = "overtime_entry"

    overtime_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employee.employee_id"), nullable=False)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False, default="day")
    hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    consumed_by_detail_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_detail.detail_id"), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "category IN ('day', 'night', 'holiday', 'holiday_night')",
            name="overtime_entry_category_check",
        ),
    )

    def to_domain(self) -> OvertimeRecord:
        return OvertimeRecord(
            record_id=self.overtime_id,
            employee_id=self.employee_id,
            work_date=self.work_date,
            category=OvertimeCategory(self.category),
            hours=self.hours,
            amount=self.amount,
            approved=self.is_approved,
            consumed_by_detail_id=self.consumed_by_detail_id,
        )


class AbsenceEntry(Base, TimestampMixin):
    __tablename__ = "absence_entry"

    absence_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employee.employee_id"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_justified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    affects_salary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    discount_amount: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    reason: Mapped[str | None] = mapped_column(String, nullable=True)
    consumed_by_detail_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_detail.detail_id"), nullable=True
    )

    def to_domain(self) -> AbsenceRecord:
        return AbsenceRecord(
            record_id=self.absence_id,
            employee_id=self.employee_id,
            start_date=self.start_date,
            end_date=self.end_date,
            affects_salary=self.affects_salary and not self.is_justified,
            discount_amount=self.discount_amount,
            reason=self.reason,
            consumed_by_detail_id=self.consumed_by_detail_id,
        )


class VacationRequest(Base, TimestampMixin):
    __tablename__ = "vacation_request"

    vacation_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employee.employee_id"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    payout_amount: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    consumed_by_detail_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_detail.detail_id"), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'completed')",
            name="vacation_request_status_check",
        ),
    )

    def to_domain(self) -> VacationRecord:
        return VacationRecord(
            record_id=self.vacation_id,
            employee_id=self.employee_id,
            start_date=self.start_date,
            end_date=self.end_date,
            payout_amount=self.payout_amount,
            approved=self.status == "approved",
            consumed_by_detail_id=self.consumed_by_detail_id,
        )


class EmployeeDeduction(Base, TimestampMixin):
    """Recurring fixed deduction; applied every run while effective."""

    __tablename__ = "employee_deduction"

    deduction_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employee.employee_id"), nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    percentage: Mapped[Decimal | None] = mapped_column(Numeric(*RATE), nullable=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "amount IS NOT NULL OR percentage IS NOT NULL",
            name="employee_deduction_amount_check",
        ),
    )

    def to_domain(self) -> FixedDeduction:
        return FixedDeduction(
            deduction_id=self.deduction_id,
            employee_id=self.employee_id,
            description=self.description,
            start_date=self.start_date,
            end_date=self.end_date,
            amount=self.amount,
            percentage=self.percentage,
            priority=self.priority,
            is_active=self.is_active,
        )


class EmployeeLoan(Base, TimestampMixin):
    __tablename__ = "employee_loan"

    loan_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employee.employee_id"), nullable=False)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    original_amount: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    installment_amount: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    pending_balance: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    installments_paid: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'paid', 'cancelled')",
            name="employee_loan_status_check",
        ),
        CheckConstraint("pending_balance >= 0", name="employee_loan_balance_check"),
    )

    def to_domain(self) -> Loan:
        return Loan(
            loan_id=self.loan_id,
            employee_id=self.employee_id,
            installment_amount=self.installment_amount,
            pending_balance=self.pending_balance,
            status=LoanStatus(self.status),
            installments_paid=self.installments_paid,
            description=self.description,
        )


class LoanPayment(Base, TimestampMixin):
    """Installment history; one row per loan per consuming detail."""

    __tablename__ = "loan_payment"

    payment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    loan_id: Mapped[UUID] = mapped_column(ForeignKey("employee_loan.loan_id"), nullable=False)
    detail_id: Mapped[UUID] = mapped_column(ForeignKey("payroll_detail.detail_id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    balance_before: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    installment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("loan_id", "installment_number", name="loan_payment_installment_unique"),
        UniqueConstraint("loan_id", "detail_id", name="loan_payment_detail_unique"),
    )


class SalaryAdvance(Base, TimestampMixin):
    __tablename__ = "salary_advance"

    advance_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employee.employee_id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    discount_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    consumed_by_detail_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_detail.detail_id"), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'discounted')",
            name="salary_advance_status_check",
        ),
    )

    def to_domain(self) -> Advance:
        return Advance(
            advance_id=self.advance_id,
            employee_id=self.employee_id,
            amount=self.amount,
            discount_date=self.discount_date,
            approved=self.status == "approved",
            discounted=self.status == "discounted",
        )
