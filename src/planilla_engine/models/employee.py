"""Employee pay profile model."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from planilla_engine.calculators.types import EmployeePayProfile
from planilla_engine.models.base import MONEY, RATE, Base, TimestampMixin


class Employee(Base, TimestampMixin):
    """Employee master data the payroll engine reads."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    employee_number: Mapped[str] = mapped_column(String, nullable=False)
    full_name: Mapped[str] = mapped_column(String, nullable=False)

    base_salary: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    pay_frequency: Mapped[str] = mapped_column(String, nullable=False, default="monthly")
    years_cotized: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_salary_10y: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=Decimal("0"))
    dependents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    risk_percentage: Mapped[Decimal] = mapped_column(Numeric(*RATE), nullable=False, default=Decimal("0"))

    subject_to_css: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    subject_to_educational_insurance: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    subject_to_income_tax: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "employee_number", name="employee_tenant_number_unique"),
        CheckConstraint(
            "pay_frequency IN ('weekly', 'biweekly', 'semimonthly', 'monthly')",
            name="employee_pay_frequency_check",
        ),
    )

    def to_profile(self) -> EmployeePayProfile:
        return EmployeePayProfile(
            employee_id=self.employee_id,
            base_salary=self.base_salary,
            pay_frequency=self.pay_frequency,  # validated by the engine
            years_cotized=self.years_cotized,
            average_salary_10y=self.average_salary_10y,
            dependents=self.dependents,
            risk_percentage=self.risk_percentage,
            subject_to_css=self.subject_to_css,
            subject_to_educational_insurance=self.subject_to_educational_insurance,
            subject_to_income_tax=self.subject_to_income_tax,
            full_name=self.full_name,
        )
