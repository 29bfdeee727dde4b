"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from planilla_engine.errors import PayrollEngineError


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "draft"
    PROCESSED = "processed"
    APPROVED = "approved"
    PAID = "paid"


class InvalidTransitionError(PayrollEngineError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = str(getattr(from_status, "value", from_status))
        self.to_status = str(getattr(to_status, "value", to_status))
        self.reason = reason
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - draft → processed
    - processed → approved
    - approved → paid

    Nothing skips a state and nothing moves backwards. The only way out of
    draft other than processing is deleting the run.
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.DRAFT: [PayrollRunStatus.PROCESSED],
        PayrollRunStatus.PROCESSED: [PayrollRunStatus.APPROVED],
        PayrollRunStatus.APPROVED: [PayrollRunStatus.PAID],
        PayrollRunStatus.PAID: [],  # Terminal state
    }

    # Statuses where details may be (re)calculated
    CALCULATION_ALLOWED = {
        PayrollRunStatus.DRAFT,
    }

    # Statuses where details and totals are frozen
    RESULTS_IMMUTABLE = {
        PayrollRunStatus.PROCESSED,
        PayrollRunStatus.APPROVED,
        PayrollRunStatus.PAID,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str, reason: str | None = None) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def can_calculate(cls, status: str) -> bool:
        """Check if calculation is allowed in this status."""
        return status in cls.CALCULATION_ALLOWED

    @classmethod
    def can_delete(cls, status: str) -> bool:
        """Only draft runs may be deleted (their details cascade)."""
        return status == PayrollRunStatus.DRAFT

    @classmethod
    def are_results_immutable(cls, status: str) -> bool:
        """Check if details and totals are frozen."""
        return status in cls.RESULTS_IMMUTABLE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

