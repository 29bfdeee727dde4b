"""Payroll run service - main orchestrator for payroll operations."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Sequence
from uuid import UUID

from planilla_engine.calculators.engine import PayrollEngine
from planilla_engine.calculators.income_tax import validate_brackets
from planilla_engine.calculators.rate_resolver import RateResolver
from planilla_engine.calculators.types import (
    EmployeeCalculation,
    EmployeeCalculationError,
    EmployeePayProfile,
    EmployeeSourceRecords,
    PayPeriod,
    RunResult,
    RunTotals,
    TaxBracket,
    TaxConfiguration,
)
from planilla_engine.config import get_settings
from planilla_engine.errors import PayrollEngineError
from planilla_engine.models import PayrollRun
from planilla_engine.services.audit import RunTransitionEvent, notify
from planilla_engine.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    PayrollRunStatus,
)
from planilla_engine.services.store import SqlPayrollStore

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from planilla_engine.services.ports import (
        AuditSink,
        ConfigurationStore,
        PayrollRunStore,
        RosterProvider,
        SourceRecordProvider,
    )

logger = logging.getLogger(__name__)


class RunNotFoundError(PayrollEngineError):
    """Raised when a payroll run does not exist."""

    def __init__(self, run_id: UUID):
        self.run_id = run_id
        super().__init__(f"Payroll run {run_id} not found")


class RunAbortedError(PayrollEngineError):
    """Raised when no employee could be calculated; nothing was persisted."""

    def __init__(self, run_id: UUID, failures: Sequence[EmployeeCalculationError]):
        self.run_id = run_id
        self.failures = list(failures)
        if self.failures:
            detail = f"all {len(self.failures)} employee(s) failed"
        else:
            detail = "no active employees in scope"
        super().__init__(f"Payroll run {run_id} aborted: {detail}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PayrollRunService:
    """Service for managing the payroll run lifecycle.

    Operations:
    - create_run: New draft run with a per-tenant YYYY-NNN number
    - process_run: Calculate every active employee and freeze the run
    - approve_run: processed → approved, annotated with the approver
    - mark_paid: approved → paid, annotated with the payment reference
    - delete_run: Remove a draft run and its details
    """

    def __init__(
        self,
        store: PayrollRunStore,
        roster: RosterProvider,
        sources: SourceRecordProvider,
        configurations: ConfigurationStore,
        audit: AuditSink | None = None,
        engine: PayrollEngine | None = None,
        max_workers: int | None = None,
    ):
        self.store = store
        self.roster = roster
        self.sources = sources
        self.resolver = RateResolver(configurations)
        self.audit = audit
        self.engine = engine or PayrollEngine()
        self.max_workers = max_workers or get_settings().max_workers

    @classmethod
    def for_session(
        cls,
        session: AsyncSession,
        audit: AuditSink | None = None,
        engine: PayrollEngine | None = None,
        max_workers: int | None = None,
    ) -> PayrollRunService:
        """Wire every boundary to one SQLAlchemy session."""
        store = SqlPayrollStore(session)
        return cls(
            store=store,
            roster=store,
            sources=store,
            configurations=store,
            audit=audit,
            engine=engine,
            max_workers=max_workers,
        )

    async def get_run(self, run_id: UUID) -> PayrollRun:
        run = await self.store.get_run(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    async def create_run(
        self,
        tenant_id: UUID,
        period_start: date,
        period_end: date,
        pay_date: date,
        run_number: str | None = None,
        description: str | None = None,
        actor: str | None = None,
    ) -> PayrollRun:
        """Create an empty draft run.

        Raises:
            ValueError: If the period is inverted.
            DuplicateRunNumberError: If the tenant already uses ``run_number``.
        """
        if period_end < period_start:
            raise ValueError(f"period_end {period_end} is before period_start {period_start}")

        if run_number is None:
            run_number = await self.store.next_run_number(tenant_id, pay_date.year)

        run = await self.store.add_run(
            PayrollRun(
                tenant_id=tenant_id,
                run_number=run_number,
                period_start=period_start,
                period_end=period_end,
                pay_date=pay_date,
                status=PayrollRunStatus.DRAFT.value,
                description=description,
                version=1,
            )
        )
        self._record(run, "created", None, PayrollRunStatus.DRAFT, actor)
        return run

    async def process_run(self, run_id: UUID, actor: str | None = None) -> RunResult:
        """Calculate the run and move it from draft to processed.

        Employees that fail are reported in the result and left out; the run
        still processes if at least one employee succeeded.

        Raises:
            RunNotFoundError: Unknown run.
            InvalidTransitionError: The run is not in draft.
            ConfigurationNotFoundError: No configuration covers the pay date.
            RunAbortedError: Zero employees calculated; nothing persisted.
            ConcurrencyConflictError: Another writer changed the run or
                consumed one of its source records first.
        """
        run = await self.get_run(run_id)
        if not PayrollRunStateMachine.can_calculate(run.status):
            raise InvalidTransitionError(
                run.status,
                PayrollRunStatus.PROCESSED,
                f"only draft runs can be processed (current: {run.status})",
            )
        observed_version = run.version
        tenant_id = run.tenant_id
        period = run.period

        configuration = await self.resolver.resolve(tenant_id, period.pay_date)
        brackets = await self.resolver.resolve_brackets(tenant_id, period.pay_date.year)
        issues = validate_brackets(brackets)
        if issues:
            logger.warning(
                "Bracket set for tenant %s fiscal year %s has problems: %s",
                tenant_id,
                period.pay_date.year,
                "; ".join(issues),
            )

        profiles = await self.roster.list_active_employees(tenant_id, period)
        records = await self.sources.load_source_records(
            [profile.employee_id for profile in profiles], period
        )

        results = await self._calculate_all(profiles, period, configuration, brackets, records)

        calculations: list[EmployeeCalculation] = []
        failures: list[EmployeeCalculationError] = []
        for result in results:
            if isinstance(result, EmployeeCalculationError):
                logger.warning(
                    "Employee %s excluded from run %s: %s (%s)",
                    result.employee_id,
                    run_id,
                    result.reason.value,
                    result.message,
                )
                failures.append(result)
            else:
                calculations.append(result)

        if not calculations:
            raise RunAbortedError(run_id, failures)

        totals = RunTotals.from_calculations(calculations)
        run = await self.store.save_processed_run(
            run_id,
            observed_version,
            calculations,
            totals,
            len(failures),
            processed_by=actor,
            processed_at=_utcnow(),
        )

        self._record(
            run,
            "processed",
            PayrollRunStatus.DRAFT,
            PayrollRunStatus.PROCESSED,
            actor,
            {
                "processed_count": len(calculations),
                "failed_employee_ids": [str(f.employee_id) for f in failures],
                "total_net": str(totals.total_net),
            },
        )

        return RunResult(
            run_id=run_id,
            processed_count=len(calculations),
            totals=totals,
            version=run.version,
            failures=failures,
        )

    async def approve_run(self, run_id: UUID, approver_id: str) -> PayrollRun:
        """Approve a processed run.

        A repeat call by the same approver on an approved run is a no-op.
        """
        run = await self.get_run(run_id)
        if run.status == PayrollRunStatus.APPROVED and run.approved_by == approver_id:
            return run

        PayrollRunStateMachine.validate_transition(
            run.status, PayrollRunStatus.APPROVED, "run must be processed before approval"
        )
        run = await self.store.update_status(
            run_id,
            PayrollRunStatus.PROCESSED,
            PayrollRunStatus.APPROVED,
            run.version,
            {"approved_by": approver_id, "approved_at": _utcnow()},
        )
        self._record(run, "approved", PayrollRunStatus.PROCESSED, PayrollRunStatus.APPROVED, approver_id)
        return run

    async def mark_paid(
        self,
        run_id: UUID,
        payment_reference: str,
        actor: str | None = None,
    ) -> PayrollRun:
        """Mark an approved run as paid.

        A repeat call with the same reference on a paid run is a no-op.
        """
        if not payment_reference:
            raise ValueError("payment_reference is required")

        run = await self.get_run(run_id)
        if run.status == PayrollRunStatus.PAID and run.payment_reference == payment_reference:
            return run

        PayrollRunStateMachine.validate_transition(
            run.status, PayrollRunStatus.PAID, "run must be approved before payment"
        )
        run = await self.store.update_status(
            run_id,
            PayrollRunStatus.APPROVED,
            PayrollRunStatus.PAID,
            run.version,
            {"payment_reference": payment_reference, "paid_at": _utcnow(), "paid_by": actor},
        )
        self._record(
            run,
            "paid",
            PayrollRunStatus.APPROVED,
            PayrollRunStatus.PAID,
            actor,
            {"payment_reference": payment_reference},
        )
        return run

    async def delete_run(self, run_id: UUID, actor: str | None = None) -> None:
        """Delete a draft run. Any other status is rejected."""
        run = await self.get_run(run_id)
        if not PayrollRunStateMachine.can_delete(run.status):
            raise InvalidTransitionError(run.status, "deleted", "only draft runs can be deleted")
        await self.store.delete_run(run_id, run.version)
        self._record(run, "deleted", PayrollRunStatus.DRAFT, None, actor)

    async def _calculate_all(
        self,
        profiles: Sequence[EmployeePayProfile],
        period: PayPeriod,
        configuration: TaxConfiguration,
        brackets: Sequence[TaxBracket],
        records: dict[UUID, EmployeeSourceRecords],
    ) -> list[EmployeeCalculation | EmployeeCalculationError]:
        """Fan the per-employee calculation out over a bounded thread pool.

        Results come back in roster order.
        """
        if not profiles:
            return []

        loop = asyncio.get_running_loop()
        empty = EmployeeSourceRecords()
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="planilla") as pool:
            futures = [
                loop.run_in_executor(
                    pool,
                    self.engine.calculate_employee,
                    profile,
                    period,
                    configuration,
                    brackets,
                    records.get(profile.employee_id, empty),
                )
                for profile in profiles
            ]
            return list(await asyncio.gather(*futures))

    def _record(
        self,
        run: PayrollRun,
        action: str,
        from_status: PayrollRunStatus | None,
        to_status: PayrollRunStatus | None,
        actor: str | None,
        details: dict | None = None,
    ) -> None:
        logger.info(
            "Payroll run %s (%s) %s by %s",
            run.run_id,
            run.run_number,
            action,
            actor or "system",
        )
        notify(
            self.audit,
            RunTransitionEvent(
                run_id=run.run_id,
                tenant_id=run.tenant_id,
                action=action,
                from_status=from_status.value if from_status else None,
                to_status=to_status.value if to_status else None,
                actor=actor,
                version=run.version,
                occurred_at=_utcnow(),
                details=details or {},
            ),
        )
