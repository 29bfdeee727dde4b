"""Payroll run header and detail models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planilla_engine.calculators.types import PayPeriod
from planilla_engine.models.base import MONEY, Base, TimestampMixin

ZERO = Decimal("0")


class PayrollRun(Base, TimestampMixin):
    """Payroll run header.

    ``version`` is the optimistic concurrency token: every status change is a
    compare-and-set on (status, version) and bumps it.
    """

    __tablename__ = "payroll_run"

    run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    run_number: Mapped[str] = mapped_column(String, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    description: Mapped[str | None] = mapped_column(String, nullable=True)

    total_gross: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    total_deductions: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    total_net: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    total_employer_cost: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    failed_employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_by: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("tenant_id", "run_number", name="payroll_run_tenant_number_unique"),
        CheckConstraint(
            "status IN ('draft', 'processed', 'approved', 'paid')",
            name="payroll_run_status_check",
        ),
        CheckConstraint("period_end >= period_start", name="payroll_run_dates_check"),
    )

    # Relationships
    details: Mapped[list[PayrollDetail]] = relationship(
        back_populates="run",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def period(self) -> PayPeriod:
        return PayPeriod(start=self.period_start, end=self.period_end, pay_date=self.pay_date)


class PayrollDetail(Base, TimestampMixin):
    """One employee's calculated pay within a run."""

    __tablename__ = "payroll_detail"

    detail_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.run_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id"),
        nullable=False,
    )
    calculation_id: Mapped[UUID] = mapped_column(nullable=False)

    # Gross components
    base_salary: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    overtime_pay: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    vacation_pay: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    bonuses: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    commissions: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    gross_pay: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)

    # Statutory
    css_employee: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    css_employer: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    risk_contribution: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    edu_employee: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    edu_employer: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    income_tax: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)

    # Other deductions
    absence_deduction: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    fixed_deductions: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    loan_installments: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    advances: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    other_deductions: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)

    total_deductions: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    net_pay: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)
    employer_cost: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=ZERO)

    # Attendance quantities
    overtime_hours_day: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)
    overtime_hours_night: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)
    overtime_hours_holiday: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)
    absence_days: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)
    vacation_days: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)

    deduction_lines: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        UniqueConstraint("run_id", "employee_id", name="payroll_detail_run_employee_unique"),
    )

    # Relationships
    run: Mapped[PayrollRun] = relationship(back_populates="details")
