"""Tests for payroll run state machine."""

import pytest

from planilla_engine.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    PayrollRunStatus,
)


class TestPayrollRunStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that the forward chain is allowed."""
        assert PayrollRunStateMachine.can_transition("draft", "processed") is True
        assert PayrollRunStateMachine.can_transition("processed", "approved") is True
        assert PayrollRunStateMachine.can_transition("approved", "paid") is True

    def test_invalid_transitions(self):
        """Test that skipping and moving backwards are blocked."""
        # Can't skip a state
        assert PayrollRunStateMachine.can_transition("draft", "approved") is False
        assert PayrollRunStateMachine.can_transition("processed", "paid") is False

        # Can't go backwards
        assert PayrollRunStateMachine.can_transition("processed", "draft") is False
        assert PayrollRunStateMachine.can_transition("approved", "processed") is False

        # Paid is terminal
        assert PayrollRunStateMachine.can_transition("paid", "draft") is False
        assert PayrollRunStateMachine.get_next_statuses("paid") == []

    def test_unknown_status(self):
        assert PayrollRunStateMachine.can_transition("voided", "draft") is False
        assert PayrollRunStateMachine.get_next_statuses("voided") == []

    def test_enum_and_string_are_interchangeable(self):
        assert PayrollRunStateMachine.can_transition(
            PayrollRunStatus.DRAFT, PayrollRunStatus.PROCESSED
        ) is True
        assert PayrollRunStateMachine.can_transition("draft", PayrollRunStatus.PROCESSED) is True

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            PayrollRunStateMachine.validate_transition(
                PayrollRunStatus.DRAFT, PayrollRunStatus.PAID, "run must be approved before payment"
            )

        assert exc_info.value.from_status == "draft"
        assert exc_info.value.to_status == "paid"
        assert "approved before payment" in str(exc_info.value)

    def test_calculation_only_in_draft(self):
        assert PayrollRunStateMachine.can_calculate("draft") is True
        for status in ("processed", "approved", "paid"):
            assert PayrollRunStateMachine.can_calculate(status) is False

    def test_delete_only_in_draft(self):
        assert PayrollRunStateMachine.can_delete("draft") is True
        assert PayrollRunStateMachine.can_delete("processed") is False

    def test_results_immutable_after_processing(self):
        assert PayrollRunStateMachine.are_results_immutable("draft") is False
        for status in ("processed", "approved", "paid"):
            assert PayrollRunStateMachine.are_results_immutable(status) is True
