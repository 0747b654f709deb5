"""Tests for statement and entry state machines."""

import pytest

from hourly_billing.errors import InvalidTransitionError, StateError
from hourly_billing.services.state_machine import (
    EntryStateMachine,
    EntryStatus,
    StatementStateMachine,
    StatementStatus,
)


class TestStatementStateMachine:
    """Test statement transitions."""

    def test_valid_transitions(self):
        """Test that the approval chain moves strictly forward."""
        # created → dept head approved
        assert StatementStateMachine.can_transition(20, 21) is True

        # dept head approved → ready for payment
        assert StatementStateMachine.can_transition(21, 22) is True

        # ready for payment → paid
        assert StatementStateMachine.can_transition(22, 23) is True

        # first statement row
        assert StatementStateMachine.can_transition(None, 20) is True

    def test_reject_from_open_states(self):
        for status in (20, 21, 22):
            assert StatementStateMachine.can_transition(status, StatementStatus.REJECTED) is True
            assert StatementStateMachine.can_reject(status) is True

    def test_invalid_transitions(self):
        """Test that skips, reversals and exits from terminal states are blocked."""
        # No skips
        assert StatementStateMachine.can_transition(20, 23) is False
        assert StatementStateMachine.can_transition(20, 22) is False

        # No going back
        assert StatementStateMachine.can_transition(22, 21) is False

        # Terminal states
        assert StatementStateMachine.can_transition(23, 24) is False
        assert StatementStateMachine.can_transition(24, 20) is False
        assert StatementStateMachine.can_reject(23) is False
        assert StatementStateMachine.can_reject(None) is False

        # A ledger can only start at Created
        assert StatementStateMachine.can_transition(None, 21) is False

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            StatementStateMachine.validate_transition(20, 23)

        assert exc_info.value.from_status == 20
        assert exc_info.value.to_status == 23
        assert exc_info.value.current_status == 20

    def test_finalize_steps(self):
        """Finalize is a function of the current status."""
        assert StatementStateMachine.next_finalize_status(21) == StatementStatus.READY_FOR_PAYMENT
        assert StatementStateMachine.next_finalize_status(22) == StatementStatus.PAID

    @pytest.mark.parametrize("status", [None, 20, 23, 24])
    def test_finalize_rejects_other_states(self, status):
        with pytest.raises(StateError) as exc_info:
            StatementStateMachine.next_finalize_status(status)

        assert exc_info.value.current_status == status

    def test_entries_mutable(self):
        assert StatementStateMachine.entries_mutable(20) is True
        assert StatementStateMachine.entries_mutable(21) is True
        assert StatementStateMachine.entries_mutable(22) is False
        assert StatementStateMachine.entries_mutable(23) is False
        assert StatementStateMachine.is_terminal(24) is True

    def test_get_next_statuses(self):
        assert StatementStateMachine.get_next_statuses(20) == [
            StatementStatus.DEPT_HEAD_APPROVED,
            StatementStatus.REJECTED,
        ]
        assert StatementStateMachine.get_next_statuses(23) == []


class TestEntryStateMachine:
    """Test time entry transitions."""

    def test_valid_transitions(self):
        assert EntryStateMachine.can_transition(None, EntryStatus.DRAFT) is True
        assert EntryStateMachine.can_transition(None, EntryStatus.SUBMITTED) is True
        assert EntryStateMachine.can_transition(10, 11) is True
        assert EntryStateMachine.can_transition(10, 12) is True
        assert EntryStateMachine.can_transition(11, 12) is True

    def test_invalid_is_terminal(self):
        """Rejected entries are never resubmitted."""
        assert EntryStateMachine.can_transition(12, 11) is False
        assert EntryStateMachine.can_transition(12, 10) is False
        assert EntryStateMachine.can_transition(11, 10) is False

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError):
            EntryStateMachine.validate_transition(EntryStatus.INVALID, EntryStatus.SUBMITTED)
