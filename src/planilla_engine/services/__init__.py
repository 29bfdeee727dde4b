"""Payroll run services."""

from planilla_engine.services.audit import LoggingAuditSink, MemoryAuditSink, RunTransitionEvent
from planilla_engine.services.ports import ConcurrencyConflictError, DuplicateRunNumberError
from planilla_engine.services.run_service import PayrollRunService, RunAbortedError, RunNotFoundError
from planilla_engine.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    PayrollRunStatus,
)
from planilla_engine.services.store import SqlPayrollStore

__all__ = [
    "ConcurrencyConflictError",
    "DuplicateRunNumberError",
    "InvalidTransitionError",
    "LoggingAuditSink",
    "MemoryAuditSink",
    "PayrollRunService",
    "PayrollRunStateMachine",
    "PayrollRunStatus",
    "RunAbortedError",
    "RunNotFoundError",
    "RunTransitionEvent",
    "SqlPayrollStore",
]
