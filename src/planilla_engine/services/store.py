"""SQLAlchemy implementation of the orchestrator's boundaries.

Mutating operations own their transaction: they commit on success and roll
back before raising. Status changes are compare-and-set updates on
(status, version); source records are claimed with updates that only match
rows nobody has consumed yet.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Sequence
from uuid import UUID, uuid4

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from planilla_engine.calculators.types import (
    ConsumptionClaims,
    EmployeeCalculation,
    EmployeePayProfile,
    EmployeeSourceRecords,
    LoanStatus,
    PayPeriod,
    RunTotals,
    TaxBracket,
    TaxConfiguration,
)
from planilla_engine.models import (
    AbsenceEntry,
    ContributionConfiguration,
    Employee,
    EmployeeDeduction,
    EmployeeLoan,
    IncomeTaxBracket,
    LoanPayment,
    OvertimeEntry,
    PayrollDetail,
    PayrollRun,
    SalaryAdvance,
    VacationRequest,
)
from planilla_engine.services.ports import ConcurrencyConflictError, DuplicateRunNumberError
from planilla_engine.services.state_machine import PayrollRunStatus

logger = logging.getLogger(__name__)

_RUN_NUMBER = re.compile(r"^(\d{4})-(\d+)$")


class SqlPayrollStore:
    """Configuration store, roster, source records and run persistence on one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ===== Configuration =====

    async def list_configurations(self, tenant_id: UUID, pay_date: date) -> list[TaxConfiguration]:
        result = await self.session.execute(
            select(ContributionConfiguration).where(
                ContributionConfiguration.tenant_id == tenant_id,
                ContributionConfiguration.effective_start <= pay_date,
                or_(
                    ContributionConfiguration.effective_end.is_(None),
                    ContributionConfiguration.effective_end > pay_date,
                ),
            )
        )
        return [row.to_domain() for row in result.scalars().all()]

    async def list_brackets(self, tenant_id: UUID, fiscal_year: int) -> list[TaxBracket]:
        result = await self.session.execute(
            select(IncomeTaxBracket)
            .where(
                IncomeTaxBracket.tenant_id == tenant_id,
                IncomeTaxBracket.fiscal_year == fiscal_year,
                IncomeTaxBracket.is_active.is_(True),
            )
            .order_by(IncomeTaxBracket.bracket_order)
        )
        return [row.to_domain() for row in result.scalars().all()]

    # ===== Roster =====

    async def list_active_employees(self, tenant_id: UUID, period: PayPeriod) -> list[EmployeePayProfile]:
        result = await self.session.execute(
            select(Employee)
            .where(
                Employee.tenant_id == tenant_id,
                Employee.is_active.is_(True),
                or_(Employee.hire_date.is_(None), Employee.hire_date <= period.end),
                or_(Employee.termination_date.is_(None), Employee.termination_date >= period.start),
            )
            .order_by(Employee.employee_number)
        )
        return [employee.to_profile() for employee in result.scalars().all()]

    # ===== Source records =====

    async def load_source_records(
        self,
        employee_ids: Sequence[UUID],
        period: PayPeriod,
    ) -> dict[UUID, EmployeeSourceRecords]:
        """Load unconsumed records for the period, grouped by employee."""
        if not employee_ids:
            return {}
        ids = list(employee_ids)
        grouped: dict[UUID, dict[str, list[Any]]] = defaultdict(lambda: defaultdict(list))

        overtime = await self.session.execute(
            select(OvertimeEntry)
            .where(
                OvertimeEntry.employee_id.in_(ids),
                OvertimeEntry.is_approved.is_(True),
                OvertimeEntry.consumed_by_detail_id.is_(None),
                OvertimeEntry.work_date >= period.start,
                OvertimeEntry.work_date <= period.end,
            )
            .order_by(OvertimeEntry.work_date, OvertimeEntry.overtime_id)
        )
        for row in overtime.scalars().all():
            grouped[row.employee_id]["overtime"].append(row.to_domain())

        absences = await self.session.execute(
            select(AbsenceEntry)
            .where(
                AbsenceEntry.employee_id.in_(ids),
                AbsenceEntry.consumed_by_detail_id.is_(None),
                AbsenceEntry.start_date <= period.end,
                AbsenceEntry.end_date >= period.start,
            )
            .order_by(AbsenceEntry.start_date, AbsenceEntry.absence_id)
        )
        for row in absences.scalars().all():
            grouped[row.employee_id]["absences"].append(row.to_domain())

        vacations = await self.session.execute(
            select(VacationRequest)
            .where(
                VacationRequest.employee_id.in_(ids),
                VacationRequest.status == "approved",
                VacationRequest.consumed_by_detail_id.is_(None),
                VacationRequest.start_date <= period.end,
                VacationRequest.end_date >= period.start,
            )
            .order_by(VacationRequest.start_date, VacationRequest.vacation_id)
        )
        for row in vacations.scalars().all():
            grouped[row.employee_id]["vacations"].append(row.to_domain())

        deductions = await self.session.execute(
            select(EmployeeDeduction)
            .where(
                EmployeeDeduction.employee_id.in_(ids),
                EmployeeDeduction.is_active.is_(True),
                EmployeeDeduction.start_date <= period.end,
                or_(EmployeeDeduction.end_date.is_(None), EmployeeDeduction.end_date >= period.start),
            )
            .order_by(EmployeeDeduction.priority, EmployeeDeduction.start_date, EmployeeDeduction.deduction_id)
        )
        for row in deductions.scalars().all():
            grouped[row.employee_id]["fixed_deductions"].append(row.to_domain())

        loans = await self.session.execute(
            select(EmployeeLoan)
            .where(
                EmployeeLoan.employee_id.in_(ids),
                EmployeeLoan.status == LoanStatus.ACTIVE.value,
                EmployeeLoan.pending_balance > 0,
                EmployeeLoan.start_date <= period.end,
            )
            .order_by(EmployeeLoan.start_date, EmployeeLoan.loan_id)
        )
        for row in loans.scalars().all():
            grouped[row.employee_id]["loans"].append(row.to_domain())

        advances = await self.session.execute(
            select(SalaryAdvance)
            .where(
                SalaryAdvance.employee_id.in_(ids),
                SalaryAdvance.status == "approved",
                SalaryAdvance.consumed_by_detail_id.is_(None),
                SalaryAdvance.discount_date >= period.start,
                SalaryAdvance.discount_date <= period.end,
            )
            .order_by(SalaryAdvance.discount_date, SalaryAdvance.advance_id)
        )
        for row in advances.scalars().all():
            grouped[row.employee_id]["advances"].append(row.to_domain())

        return {
            employee_id: EmployeeSourceRecords(
                **{kind: tuple(records) for kind, records in kinds.items()}
            )
            for employee_id, kinds in grouped.items()
        }

    async def claim_records(
        self,
        detail_id: UUID,
        claims: ConsumptionClaims,
        claimed_at: datetime,
    ) -> None:
        """Stamp consumed records with ``detail_id`` inside the current transaction.

        Raises ConcurrencyConflictError if any record was already consumed.
        The caller is responsible for rolling back.
        """
        await self._claim(
            OvertimeEntry,
            OvertimeEntry.overtime_id,
            claims.overtime_ids,
            detail_id,
            [OvertimeEntry.consumed_by_detail_id.is_(None)],
            {},
        )
        await self._claim(
            AbsenceEntry,
            AbsenceEntry.absence_id,
            claims.absence_ids,
            detail_id,
            [AbsenceEntry.consumed_by_detail_id.is_(None)],
            {},
        )
        await self._claim(
            VacationRequest,
            VacationRequest.vacation_id,
            claims.vacation_ids,
            detail_id,
            [
                VacationRequest.consumed_by_detail_id.is_(None),
                VacationRequest.status == "approved",
            ],
            {"status": "completed"},
        )
        await self._claim(
            SalaryAdvance,
            SalaryAdvance.advance_id,
            claims.advance_ids,
            detail_id,
            [
                SalaryAdvance.consumed_by_detail_id.is_(None),
                SalaryAdvance.status == "approved",
            ],
            {"status": "discounted"},
        )

        for installment in claims.loan_installments:
            # installments_paid is the loan's check-and-set token
            result = await self.session.execute(
                update(EmployeeLoan)
                .where(
                    EmployeeLoan.loan_id == installment.loan_id,
                    EmployeeLoan.status == LoanStatus.ACTIVE.value,
                    EmployeeLoan.installments_paid == installment.installment_number - 1,
                )
                .values(
                    pending_balance=installment.balance_after,
                    installments_paid=installment.installment_number,
                    status=(
                        LoanStatus.PAID.value if installment.pays_off else LoanStatus.ACTIVE.value
                    ),
                )
            )
            if result.rowcount != 1:
                raise ConcurrencyConflictError(
                    "employee_loan",
                    installment.loan_id,
                    f"installment {installment.installment_number} already taken",
                )
            self.session.add(
                LoanPayment(
                    loan_id=installment.loan_id,
                    detail_id=detail_id,
                    amount=installment.amount,
                    balance_before=installment.balance_before,
                    balance_after=installment.balance_after,
                    installment_number=installment.installment_number,
                    paid_at=claimed_at,
                )
            )

    async def _claim(
        self,
        model: Any,
        id_column: Any,
        record_ids: Sequence[UUID],
        detail_id: UUID,
        conditions: list[Any],
        extra_values: dict[str, Any],
    ) -> None:
        if not record_ids:
            return
        result = await self.session.execute(
            update(model)
            .where(id_column.in_(list(record_ids)), *conditions)
            .values(consumed_by_detail_id=detail_id, **extra_values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(record_ids):
            raise ConcurrencyConflictError(
                model.__tablename__,
                detail_id,
                f"claimed {result.rowcount} of {len(record_ids)} records",
            )

    # ===== Runs =====

    async def get_run(self, run_id: UUID) -> PayrollRun | None:
        result = await self.session.execute(
            select(PayrollRun)
            .where(PayrollRun.run_id == run_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_details(self, run_id: UUID) -> list[PayrollDetail]:
        result = await self.session.execute(
            select(PayrollDetail)
            .where(PayrollDetail.run_id == run_id)
            .order_by(PayrollDetail.employee_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def next_run_number(self, tenant_id: UUID, year: int) -> str:
        """Next ``YYYY-NNN`` number for the tenant and year."""
        result = await self.session.execute(
            select(PayrollRun.run_number).where(
                PayrollRun.tenant_id == tenant_id,
                PayrollRun.run_number.like(f"{year}-%"),
            )
        )
        highest = 0
        for number in result.scalars().all():
            match = _RUN_NUMBER.match(number)
            if match:
                highest = max(highest, int(match.group(2)))
        return f"{year}-{highest + 1:03d}"

    async def add_run(self, run: PayrollRun) -> PayrollRun:
        existing = await self.session.execute(
            select(PayrollRun.run_id).where(
                PayrollRun.tenant_id == run.tenant_id,
                PayrollRun.run_number == run.run_number,
            )
        )
        if existing.first() is not None:
            raise DuplicateRunNumberError(run.tenant_id, run.run_number)

        self.session.add(run)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise DuplicateRunNumberError(run.tenant_id, run.run_number) from exc
        return run

    async def save_processed_run(
        self,
        run_id: UUID,
        expected_version: int,
        calculations: Sequence[EmployeeCalculation],
        totals: RunTotals,
        failed_count: int,
        processed_by: str | None,
        processed_at: datetime,
    ) -> PayrollRun:
        """Header CAS, detail replacement and record claims in one transaction."""
        try:
            result = await self.session.execute(
                update(PayrollRun)
                .where(
                    PayrollRun.run_id == run_id,
                    PayrollRun.status == PayrollRunStatus.DRAFT.value,
                    PayrollRun.version == expected_version,
                )
                .values(
                    status=PayrollRunStatus.PROCESSED.value,
                    total_gross=totals.total_gross,
                    total_deductions=totals.total_deductions,
                    total_net=totals.total_net,
                    total_employer_cost=totals.total_employer_cost,
                    failed_employee_count=failed_count,
                    processed_at=processed_at,
                    processed_by=processed_by,
                    version=expected_version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConcurrencyConflictError(
                    "payroll_run", run_id, f"expected draft at version {expected_version}"
                )

            await self.session.execute(delete(PayrollDetail).where(PayrollDetail.run_id == run_id))

            for calculation in calculations:
                detail_id = uuid4()
                self.session.add(
                    PayrollDetail(
                        detail_id=detail_id,
                        run_id=run_id,
                        employee_id=calculation.employee_id,
                        calculation_id=calculation.calculation_id,
                        deduction_lines=calculation.to_canonical_dict()["deduction_lines"],
                        **calculation.amounts(),
                    )
                )
                await self.session.flush()
                if not calculation.claims.is_empty():
                    await self.claim_records(detail_id, calculation.claims, processed_at)

            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Payroll run %s processed: %d details, %d failures, net %s",
            run_id,
            len(calculations),
            failed_count,
            totals.total_net,
        )

        run = await self.get_run(run_id)
        if run is None:
            raise ConcurrencyConflictError("payroll_run", run_id, "run disappeared after commit")
        return run

    async def update_status(
        self,
        run_id: UUID,
        from_status: str,
        to_status: str,
        expected_version: int,
        values: dict[str, Any],
    ) -> PayrollRun:
        try:
            result = await self.session.execute(
                update(PayrollRun)
                .where(
                    PayrollRun.run_id == run_id,
                    PayrollRun.status == str(getattr(from_status, "value", from_status)),
                    PayrollRun.version == expected_version,
                )
                .values(
                    status=str(getattr(to_status, "value", to_status)),
                    version=expected_version + 1,
                    **values,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConcurrencyConflictError(
                    "payroll_run",
                    run_id,
                    f"expected {from_status} at version {expected_version}",
                )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        run = await self.get_run(run_id)
        if run is None:
            raise ConcurrencyConflictError("payroll_run", run_id, "run disappeared after commit")
        return run

    async def delete_run(self, run_id: UUID, expected_version: int) -> None:
        try:
            await self.session.execute(delete(PayrollDetail).where(PayrollDetail.run_id == run_id))
            result = await self.session.execute(
                delete(PayrollRun)
                .where(
                    PayrollRun.run_id == run_id,
                    PayrollRun.status == PayrollRunStatus.DRAFT.value,
                    PayrollRun.version == expected_version,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConcurrencyConflictError(
                    "payroll_run", run_id, f"expected draft at version {expected_version}"
                )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
