"""Statement and time-entry state machines with transition validation."""

from __future__ import annotations

from enum import IntEnum

from hourly_billing.errors import InvalidTransitionError, StateError


class EntryStatus(IntEnum):
    """Time entry status codes."""

    DRAFT = 10
    SUBMITTED = 11
    INVALID = 12


class StatementStatus(IntEnum):
    """Statement status codes."""

    CREATED = 20
    DEPT_HEAD_APPROVED = 21
    READY_FOR_PAYMENT = 22
    PAID = 23
    REJECTED = 24


class EntryStateMachine:
    """State machine for time entry status transitions.

    Allowed transitions:
    - draft → submitted (linked into a statement)
    - draft → invalid (soft-removed)
    - submitted → invalid (statement rejected, entry removed)
    """

    VALID_TRANSITIONS: dict[EntryStatus, list[EntryStatus]] = {
        EntryStatus.DRAFT: [EntryStatus.SUBMITTED, EntryStatus.INVALID],
        EntryStatus.SUBMITTED: [EntryStatus.INVALID],
        EntryStatus.INVALID: [],  # Terminal state
    }

    @classmethod
    def can_transition(cls, from_status: int | None, to_status: int) -> bool:
        """Check if a transition is valid. ``None`` means no ledger row yet."""
        if from_status is None:
            return to_status in (EntryStatus.DRAFT, EntryStatus.SUBMITTED)
        allowed = cls.VALID_TRANSITIONS.get(EntryStatus(from_status), [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: int | None, to_status: int) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)


class StatementStateMachine:
    """State machine for statement status transitions.

    Allowed transitions:
    - created → dept_head_approved (department head)
    - dept_head_approved → ready_for_payment (business office)
    - ready_for_payment → paid (business office)
    - created | dept_head_approved | ready_for_payment → rejected
    """

    VALID_TRANSITIONS: dict[StatementStatus, list[StatementStatus]] = {
        StatementStatus.CREATED: [StatementStatus.DEPT_HEAD_APPROVED, StatementStatus.REJECTED],
        StatementStatus.DEPT_HEAD_APPROVED: [
            StatementStatus.READY_FOR_PAYMENT,
            StatementStatus.REJECTED,
        ],
        StatementStatus.READY_FOR_PAYMENT: [StatementStatus.PAID, StatementStatus.REJECTED],
        StatementStatus.PAID: [],  # Terminal state
        StatementStatus.REJECTED: [],  # Terminal state
    }

    # Steps the business office drives with finalize
    FINALIZE_STEPS: dict[StatementStatus, StatementStatus] = {
        StatementStatus.DEPT_HEAD_APPROVED: StatementStatus.READY_FOR_PAYMENT,
        StatementStatus.READY_FOR_PAYMENT: StatementStatus.PAID,
    }

    # Statuses in which linked entries may still be corrected or added
    ENTRIES_MUTABLE = {
        StatementStatus.CREATED,
        StatementStatus.DEPT_HEAD_APPROVED,
    }

    # Statuses in which linked entries are frozen
    TERMINAL = {
        StatementStatus.PAID,
        StatementStatus.REJECTED,
    }

    @classmethod
    def can_transition(cls, from_status: int | None, to_status: int) -> bool:
        """Check if a transition is valid. ``None`` means no ledger row yet."""
        if from_status is None:
            return to_status == StatementStatus.CREATED
        allowed = cls.VALID_TRANSITIONS.get(StatementStatus(from_status), [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: int | None, to_status: int) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def get_next_statuses(cls, current_status: int) -> list[StatementStatus]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(StatementStatus(current_status), [])

    @classmethod
    def next_finalize_status(cls, current_status: int | None) -> StatementStatus:
        """Status finalize moves a statement to, or StateError when none."""
        if current_status is not None:
            target = cls.FINALIZE_STEPS.get(StatementStatus(current_status))
            if target is not None:
                return target
        raise StateError(
            f"Statement cannot be finalized in status {current_status}",
            current_status=current_status,
        )

    @classmethod
    def can_reject(cls, status: int | None) -> bool:
        return status is not None and cls.can_transition(status, StatementStatus.REJECTED)

    @classmethod
    def entries_mutable(cls, status: int | None) -> bool:
        """Check if entries of a statement in this status may be modified."""
        return status in cls.ENTRIES_MUTABLE

    @classmethod
    def is_terminal(cls, status: int | None) -> bool:
        return status in cls.TERMINAL
