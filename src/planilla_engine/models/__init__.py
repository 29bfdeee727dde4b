"""ORM models."""

from planilla_engine.models.base import Base, TimestampMixin
from planilla_engine.models.configuration import ContributionConfiguration, IncomeTaxBracket
from planilla_engine.models.employee import Employee
from planilla_engine.models.payroll import PayrollDetail, PayrollRun
from planilla_engine.models.sources import (
    AbsenceEntry,
    EmployeeDeduction,
    EmployeeLoan,
    LoanPayment,
    OvertimeEntry,
    SalaryAdvance,
    VacationRequest,
)

__all__ = [
    "AbsenceEntry",
    "Base",
    "ContributionConfiguration",
    "Employee",
    "EmployeeDeduction",
    "EmployeeLoan",
    "IncomeTaxBracket",
    "LoanPayment",
    "OvertimeEntry",
    "PayrollDetail",
    "PayrollRun",
    "SalaryAdvance",
    "TimestampMixin",
    "VacationRequest",
]
