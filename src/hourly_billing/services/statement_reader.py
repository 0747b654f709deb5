"""Read paths over statements. Every amount is priced on read."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hourly_billing.actor import Actor
from hourly_billing.calculators import AmountCalculator, StatementPricing
from hourly_billing.errors import AuthorizationError, NotFoundError
from hourly_billing.holidays import HolidayCalendar
from hourly_billing.models import Quarter, Statement, StatementStatusLog
from hourly_billing.services.quarters import quarter_bounds
from hourly_billing.services.status_ledger import current_status, ordered


@dataclass
class StatementView:
    """A statement with its derived status, priced lines and ledger."""

    statement: Statement
    quarter_label: str
    status: int | None
    pricing: StatementPricing
    status_history: list[StatementStatusLog] = field(default_factory=list)


class StatementReader:
    """Builds statement views for workers, department heads and the office."""

    def __init__(
        self,
        session: AsyncSession,
        jurisdiction: str,
        calendar: HolidayCalendar | None = None,
    ):
        self.session = session
        self.calculator = AmountCalculator(session, jurisdiction, calendar)

    def _query(self):
        return (
            select(Statement)
            .options(
                selectinload(Statement.entries),
                selectinload(Statement.quarter),
                selectinload(Statement.status_logs),
            )
            .execution_options(populate_existing=True)
        )

    async def view(self, statement: Statement) -> StatementView:
        history = ordered(statement.status_logs)
        return StatementView(
            statement=statement,
            quarter_label=statement.quarter.label,
            status=current_status(history),
            pricing=await self.calculator.price_statement(statement),
            status_history=history,
        )

    async def views(self, statement_ids: Sequence[UUID]) -> list[StatementView]:
        """Views of the given statements, oldest first."""
        if not statement_ids:
            return []
        result = await self.session.execute(
            self._query()
            .where(Statement.statement_id.in_(statement_ids))
            .order_by(Statement.created_at)
        )
        return [await self.view(s) for s in result.scalars().all()]

    async def my_statements(self, actor: Actor) -> list[StatementView]:
        result = await self.session.execute(
            self._query()
            .where(Statement.owner_id == actor.actor_id)
            .order_by(Statement.created_at.desc())
        )
        return [await self.view(s) for s in result.scalars().all()]

    async def statement_detail(self, actor: Actor, statement_id: UUID) -> StatementView:
        result = await self.session.execute(
            self._query().where(Statement.statement_id == statement_id)
        )
        statement = result.scalar_one_or_none()
        if statement is None:
            raise NotFoundError("Statement", statement_id)
        if not actor.can_address(statement.owner_id, statement.department_id):
            raise AuthorizationError("Not allowed to view this statement")
        return await self.view(statement)

    async def history(
        self,
        actor: Actor,
        year: int | None = None,
        quarter: str | None = None,
        department_id: UUID | None = None,
    ) -> list[StatementView]:
        """Statements visible to an approver, optionally filtered by period.

        Department heads see their departments, the office sees everything.
        """
        query = self._query().join(Statement.quarter)

        if actor.is_office_or_admin:
            if department_id is not None:
                query = query.where(Statement.department_id == department_id)
        else:
            departments = set(actor.managed_departments)
            if department_id is not None:
                if department_id not in departments:
                    raise AuthorizationError("Not department head of this department")
                departments = {department_id}
            if not departments:
                return []
            query = query.where(Statement.department_id.in_(departments))

        if year is not None:
            start, end = quarter_bounds(year, quarter)
            query = query.where(Quarter.start_date >= start, Quarter.start_date <= end)

        result = await self.session.execute(
            query.order_by(Quarter.start_date.desc(), Statement.created_at.desc())
        )
        return [await self.view(s) for s in result.scalars().all()]
