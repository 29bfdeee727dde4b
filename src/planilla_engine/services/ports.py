"""Boundaries the run orchestrator depends on.

The orchestrator only talks to these protocols; ``SqlPayrollStore`` is the
SQLAlchemy implementation, tests may supply their own.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Protocol, Sequence, runtime_checkable
from uuid import UUID

from planilla_engine.errors import PayrollEngineError

if TYPE_CHECKING:
    from planilla_engine.calculators.types import (
        ConsumptionClaims,
        EmployeeCalculation,
        EmployeePayProfile,
        EmployeeSourceRecords,
        PayPeriod,
        RunTotals,
        TaxBracket,
        TaxConfiguration,
    )
    from planilla_engine.models import PayrollRun
    from planilla_engine.services.audit import RunTransitionEvent


class ConcurrencyConflictError(PayrollEngineError):
    """Raised when a compare-and-set lost a race. Re-read and retry."""

    def __init__(self, entity: str, entity_id: UUID | str, detail: str):
        self.entity = entity
        self.entity_id = entity_id
        self.detail = detail
        super().__init__(f"Concurrency conflict on {entity} {entity_id}: {detail}")


class DuplicateRunNumberError(PayrollEngineError):
    """Raised when a tenant already has a run with the requested number."""

    def __init__(self, tenant_id: UUID, run_number: str):
        self.tenant_id = tenant_id
        self.run_number = run_number
        super().__init__(f"Run number {run_number} already exists for tenant {tenant_id}")


@runtime_checkable
class ConfigurationStore(Protocol):
    """Read-only access to contribution configuration and brackets."""

    async def list_configurations(self, tenant_id: UUID, pay_date: date) -> list[TaxConfiguration]:
        """Configurations of the tenant that may cover ``pay_date``."""
        ...

    async def list_brackets(self, tenant_id: UUID, fiscal_year: int) -> list[TaxBracket]:
        """The tenant's bracket set for a fiscal year."""
        ...


@runtime_checkable
class RosterProvider(Protocol):
    """Active employees of a tenant for a period, soft-deletes already filtered."""

    async def list_active_employees(self, tenant_id: UUID, period: PayPeriod) -> list[EmployeePayProfile]:
        ...


@runtime_checkable
class SourceRecordProvider(Protocol):
    """Unconsumed source records, and the claim that stamps them consumed."""

    async def load_source_records(
        self,
        employee_ids: Sequence[UUID],
        period: PayPeriod,
    ) -> dict[UUID, EmployeeSourceRecords]:
        ...

    async def claim_records(
        self,
        detail_id: UUID,
        claims: ConsumptionClaims,
        claimed_at: datetime,
    ) -> None:
        """Stamp records with ``detail_id``; raise ConcurrencyConflictError
        if any of them was consumed in the meantime."""
        ...


@runtime_checkable
class PayrollRunStore(Protocol):
    """Persistence for run headers and details."""

    async def get_run(self, run_id: UUID) -> PayrollRun | None:
        ...

    async def next_run_number(self, tenant_id: UUID, year: int) -> str:
        ...

    async def add_run(self, run: PayrollRun) -> PayrollRun:
        ...

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
        """Atomically write details, totals and claims and move to processed."""
        ...

    async def update_status(
        self,
        run_id: UUID,
        from_status: str,
        to_status: str,
        expected_version: int,
        values: dict[str, Any],
    ) -> PayrollRun:
        ...

    async def delete_run(self, run_id: UUID, expected_version: int) -> None:
        ...


@runtime_checkable
class AuditSink(Protocol):
    """Receives run transitions. Fire-and-forget from the engine's side."""

    def record(self, event: RunTransitionEvent) -> None:
        ...
