"""Contribution configuration and income-tax bracket models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from planilla_engine.calculators.types import TaxBracket, TaxConfiguration
from planilla_engine.models.base import MONEY, RATE, Base, TimestampMixin


class ContributionConfiguration(Base, TimestampMixin):
    """CSS, educational insurance and dependent parameters for a date range."""

    __tablename__ = "contribution_configuration"

    configuration_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    effective_start: Mapped[date] = mapped_column(Date, nullable=False)
    effective_end: Mapped[date | None] = mapped_column(Date, nullable=True)

    css_employee_rate: Mapped[Decimal] = mapped_column(Numeric(*RATE), nullable=False)
    css_employer_rate: Mapped[Decimal] = mapped_column(Numeric(*RATE), nullable=False)
    risk_rate_low: Mapped[Decimal] = mapped_column(Numeric(*RATE), nullable=False)
    risk_rate_medium: Mapped[Decimal] = mapped_column(Numeric(*RATE), nullable=False)
    risk_rate_high: Mapped[Decimal] = mapped_column(Numeric(*RATE), nullable=False)

    css_max_base_standard: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    css_max_base_intermediate: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    css_max_base_high: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    css_intermediate_min_years: Mapped[int] = mapped_column(Integer, nullable=False)
    css_intermediate_min_avg_salary: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    css_high_min_years: Mapped[int] = mapped_column(Integer, nullable=False)
    css_high_min_avg_salary: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)

    edu_employee_rate: Mapped[Decimal] = mapped_column(Numeric(*RATE), nullable=False)
    edu_employer_rate: Mapped[Decimal] = mapped_column(Numeric(*RATE), nullable=False)
    edu_max_base: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)

    dependent_deduction_amount: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    max_dependents: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "effective_end IS NULL OR effective_end > effective_start",
            name="contribution_configuration_dates_check",
        ),
    )

    def to_domain(self) -> TaxConfiguration:
        return TaxConfiguration(
            configuration_id=self.configuration_id,
            tenant_id=self.tenant_id,
            effective_start=self.effective_start,
            effective_end=self.effective_end,
            css_employee_rate=self.css_employee_rate,
            css_employer_rate=self.css_employer_rate,
            risk_rate_low=self.risk_rate_low,
            risk_rate_medium=self.risk_rate_medium,
            risk_rate_high=self.risk_rate_high,
            css_max_base_standard=self.css_max_base_standard,
            css_max_base_intermediate=self.css_max_base_intermediate,
            css_max_base_high=self.css_max_base_high,
            css_intermediate_min_years=self.css_intermediate_min_years,
            css_intermediate_min_avg_salary=self.css_intermediate_min_avg_salary,
            css_high_min_years=self.css_high_min_years,
            css_high_min_avg_salary=self.css_high_min_avg_salary,
            edu_employee_rate=self.edu_employee_rate,
            edu_employer_rate=self.edu_employer_rate,
            edu_max_base=self.edu_max_base,
            dependent_deduction_amount=self.dependent_deduction_amount,
            max_dependents=self.max_dependents,
            created_at=self.created_at,
        )


class IncomeTaxBracket(Base, TimestampMixin):
    """One ISR bracket in a tenant's fiscal-year bracket set."""

    __tablename__ = "income_tax_bracket"

    bracket_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    bracket_order: Mapped[int] = mapped_column(Integer, nullable=False)
    min_income: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    max_income: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    rate: Mapped[Decimal] = mapped_column(Numeric(*RATE), nullable=False)
    fixed_amount: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=Decimal("0"))
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "fiscal_year", "bracket_order", name="income_tax_bracket_order_unique"
        ),
    )

    def to_domain(self) -> TaxBracket:
        return TaxBracket(
            fiscal_year=self.fiscal_year,
            order=self.bracket_order,
            min_income=self.min_income,
            max_income=self.max_income,
            rate=self.rate,
            fixed_amount=self.fixed_amount,
            description=self.description,
        )
