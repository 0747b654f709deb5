"""Approval workflow: department head → business office → payout."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hourly_billing.actor import Actor
from hourly_billing.clock import Clock
from hourly_billing.database import atomic
from hourly_billing.errors import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from hourly_billing.models import Statement, TimeEntry
from hourly_billing.services.state_machine import (
    EntryStatus,
    StatementStateMachine,
    StatementStatus,
)
from hourly_billing.services.status_ledger import StatusLedger

logger = logging.getLogger(__name__)

MIN_REASON_LENGTH = 5


@dataclass
class TransitionResult:
    """Outcome of a single statement transition."""

    statement_id: UUID
    from_status: int | None
    to_status: int
    invalidated_entries: int = 0


@dataclass
class BulkFinalizeResult:
    """Outcome of paying out many statements at once."""

    paid: list[UUID] = field(default_factory=list)
    skipped: dict[UUID, int | None] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.paid)


class ApprovalWorkflow:
    """Service driving statements through the approval chain.

    Operations:
    - approve: Department head signs off a created statement
    - reject: Any approver rejects an open statement, invalidating its entries
    - finalize: Business office moves approved → ready for payment → paid
    - finalize_bulk: Business office pays out every ready statement of a list
    """

    def __init__(self, session: AsyncSession, clock: Clock):
        self.session = session
        self.clock = clock
        self.ledger = StatusLedger(session, clock)

    async def _load(self, statement_id: UUID) -> Statement:
        statement = await self.session.get(Statement, statement_id)
        if statement is None:
            raise NotFoundError("Statement", statement_id)
        return statement

    async def _statements(self, statement_ids: Sequence[UUID], departments=None) -> list[Statement]:
        if not statement_ids:
            return []
        query = select(Statement).where(Statement.statement_id.in_(statement_ids))
        if departments is not None:
            query = query.where(Statement.department_id.in_(departments))
        result = await self.session.execute(query.order_by(Statement.created_at))
        return list(result.scalars().all())

    # ===== Queues =====

    async def awaiting_department_head(self, actor: Actor) -> list[Statement]:
        """Created statements of the departments the actor heads."""
        if not actor.is_department_head and not actor.is_admin:
            return []
        ids = await self.ledger.statements_in_status(StatementStatus.CREATED)
        departments = None if actor.is_admin else list(actor.managed_departments)
        return await self._statements(ids, departments)

    async def awaiting_office(self, actor: Actor) -> list[Statement]:
        """Statements approved by a department head, waiting for the office."""
        actor.require_office()
        ids = await self.ledger.statements_in_status(StatementStatus.DEPT_HEAD_APPROVED)
        return await self._statements(ids)

    async def awaiting_payment(self, actor: Actor) -> list[Statement]:
        """Statements ready for payout."""
        actor.require_office()
        ids = await self.ledger.statements_in_status(StatementStatus.READY_FOR_PAYMENT)
        return await self._statements(ids)

    # ===== Transitions =====

    async def approve(
        self,
        statement_id: UUID,
        actor: Actor,
        comment: str | None = None,
    ) -> TransitionResult:
        """Department head approval: Created → DeptHeadApproved."""
        statement = await self._load(statement_id)
        actor.require_manages(statement.department_id)

        current = await self.ledger.statement_status(statement_id)
        if current != StatementStatus.CREATED:
            raise InvalidTransitionError(
                current,
                StatementStatus.DEPT_HEAD_APPROVED,
                "Only newly created statements can be approved",
            )

        async with atomic(self.session):
            await self.ledger.append_statement_status(
                statement_id,
                StatementStatus.DEPT_HEAD_APPROVED,
                actor.actor_id,
                comment or "Approved by department head",
                from_status=current,
            )

        logger.info("Statement %s approved by %s", statement_id, actor.actor_id)
        return TransitionResult(statement_id, current, StatementStatus.DEPT_HEAD_APPROVED)

    async def reject(
        self,
        statement_id: UUID,
        actor: Actor,
        reason: str,
    ) -> TransitionResult:
        """Reject an open statement and invalidate every linked entry.

        Entries keep their link to the statement so the history stays
        attached; they are not resubmittable.
        """
        reason = (reason or "").strip()
        if len(reason) < MIN_REASON_LENGTH:
            raise ValidationError(
                f"A rejection reason of at least {MIN_REASON_LENGTH} characters is required"
            )

        statement = await self._load(statement_id)
        if not (actor.manages(statement.department_id) or actor.is_office_or_admin):
            raise AuthorizationError("Not allowed to reject this statement")

        current = await self.ledger.statement_status(statement_id)
        if not StatementStateMachine.can_reject(current):
            raise InvalidTransitionError(current, StatementStatus.REJECTED, "Statement is closed")

        result = await self.session.execute(
            select(TimeEntry.time_entry_id).where(TimeEntry.statement_id == statement_id)
        )
        entry_ids = list(result.scalars().all())
        entry_statuses = await self.ledger.entry_statuses(entry_ids)

        invalidated = 0
        async with atomic(self.session):
            await self.ledger.append_statement_status(
                statement_id,
                StatementStatus.REJECTED,
                actor.actor_id,
                reason,
                from_status=current,
            )
            for entry_id in entry_ids:
                if entry_statuses.get(entry_id) == EntryStatus.INVALID:
                    continue
                await self.ledger.append_entry_status(
                    entry_id,
                    EntryStatus.INVALID,
                    actor.actor_id,
                    reason,
                    from_status=entry_statuses.get(entry_id),
                )
                invalidated += 1

        logger.info(
            "Statement %s rejected by %s (%d entries invalidated)",
            statement_id,
            actor.actor_id,
            invalidated,
        )
        return TransitionResult(statement_id, current, StatementStatus.REJECTED, invalidated)

    async def finalize(
        self,
        statement_id: UUID,
        actor: Actor,
        comment: str | None = None,
    ) -> TransitionResult:
        """Business office step: DeptHeadApproved → ReadyForPayment → Paid."""
        actor.require_office()
        await self._load(statement_id)

        current = await self.ledger.statement_status(statement_id)
        target = StatementStateMachine.next_finalize_status(current)

        async with atomic(self.session):
            await self.ledger.append_statement_status(
                statement_id,
                target,
                actor.actor_id,
                comment,
                from_status=current,
            )

        logger.info("Statement %s finalized %s -> %d", statement_id, current, int(target))
        return TransitionResult(statement_id, current, target)

    async def finalize_bulk(
        self,
        statement_ids: Sequence[UUID],
        actor: Actor,
        comment: str | None = None,
    ) -> BulkFinalizeResult:
        """Mark every listed ReadyForPayment statement as Paid.

        Statements in any other status are skipped and reported with their
        current status.
        """
        actor.require_office()
        requested = list(dict.fromkeys(statement_ids))
        if not requested:
            raise ValidationError("No statements selected")

        statuses = await self.ledger.statement_statuses(requested)
        outcome = BulkFinalizeResult()

        async with atomic(self.session):
            for statement_id in requested:
                current = statuses.get(statement_id)
                if current != StatementStatus.READY_FOR_PAYMENT:
                    outcome.skipped[statement_id] = current
                    continue
                await self.ledger.append_statement_status(
                    statement_id,
                    StatementStatus.PAID,
                    actor.actor_id,
                    comment or "Paid out",
                    from_status=current,
                )
                outcome.paid.append(statement_id)

        if outcome.skipped:
            logger.warning("Bulk finalize skipped %d statement(s)", len(outcome.skipped))
        logger.info("Bulk finalize paid %d statement(s)", outcome.count)
        return outcome
