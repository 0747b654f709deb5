"""Annual pay limits and how much of them each worker has used."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hourly_billing.actor import Actor
from hourly_billing.calculators import AmountCalculator, statement_total
from hourly_billing.clock import Clock
from hourly_billing.database import atomic
from hourly_billing.errors import AuthorizationError, NotFoundError, ValidationError
from hourly_billing.holidays import HolidayCalendar
from hourly_billing.models import PayLimit, RateRecord, TimeEntry
from hourly_billing.services.quarters import quarter_bounds
from hourly_billing.services.state_machine import EntryStatus
from hourly_billing.services.status_ledger import StatusLedger

logger = logging.getLogger(__name__)


def select_limit(limits: list[PayLimit], on: date) -> PayLimit | None:
    """The covering limit with the latest start, or None."""
    covering = [limit for limit in limits if limit.is_active_on(on)]
    return max(covering, key=lambda limit: (limit.valid_from, limit.pay_limit_id or 0), default=None)


@dataclass
class LimitUsage:
    """Amount a worker earned this year against the limit in force today."""

    worker_id: UUID
    department_ids: list[UUID] = field(default_factory=list)
    limit: Decimal = Decimal("0.00")
    used: Decimal = Decimal("0.00")

    @property
    def remaining(self) -> Decimal:
        return self.limit - self.used

    @property
    def exceeded(self) -> bool:
        return self.used > self.limit


class LimitService:
    """CRUD for pay limits plus the per-worker usage overview.

    Usage covers every entry of the current calendar year except invalidated
    ones, priced on read like statements are. A missing limit counts as zero.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock,
        jurisdiction: str,
        calendar: HolidayCalendar | None = None,
    ):
        self.session = session
        self.clock = clock
        self.calculator = AmountCalculator(session, jurisdiction, calendar)
        self.ledger = StatusLedger(session, clock)

    # ===== Administration =====

    async def list_limits(self) -> list[PayLimit]:
        result = await self.session.execute(select(PayLimit).order_by(PayLimit.valid_from.desc()))
        return list(result.scalars().all())

    async def current_limit(self, on: date | None = None) -> PayLimit | None:
        return select_limit(await self.list_limits(), on or self.clock.today())

    async def _load(self, limit_id: int) -> PayLimit:
        limit = await self.session.get(PayLimit, limit_id)
        if limit is None:
            raise NotFoundError("PayLimit", limit_id)
        return limit

    async def _validate(
        self,
        amount: Decimal,
        valid_from: date,
        valid_to: date | None,
        exclude_id: int | None = None,
    ) -> Decimal:
        amount = Decimal(str(amount))
        if amount < 0:
            raise ValidationError("Limit must not be negative", amount=str(amount))
        if valid_to is not None and valid_to < valid_from:
            raise ValidationError("Limit must not end before it starts")

        for limit in await self.list_limits():
            if limit.pay_limit_id == exclude_id:
                continue
            if limit.overlaps(valid_from, valid_to):
                raise ValidationError(
                    f"Overlaps pay limit {limit.pay_limit_id} "
                    f"({limit.valid_from} to {limit.valid_to or 'open'})",
                    conflicting_limit_id=limit.pay_limit_id,
                )
        return amount

    async def create_limit(
        self,
        actor: Actor,
        amount: Decimal,
        valid_from: date,
        valid_to: date | None = None,
    ) -> PayLimit:
        actor.require_admin()
        amount = await self._validate(amount, valid_from, valid_to)

        async with atomic(self.session):
            limit = PayLimit(amount=amount, valid_from=valid_from, valid_to=valid_to)
            self.session.add(limit)
            await self.session.flush()

        logger.info("Pay limit %s created (%s from %s)", limit.pay_limit_id, amount, valid_from)
        return limit

    async def update_limit(
        self,
        actor: Actor,
        limit_id: int,
        amount: Decimal,
        valid_from: date,
        valid_to: date | None = None,
    ) -> PayLimit:
        actor.require_admin()
        limit = await self._load(limit_id)
        amount = await self._validate(amount, valid_from, valid_to, exclude_id=limit_id)

        async with atomic(self.session):
            limit.amount = amount
            limit.valid_from = valid_from
            limit.valid_to = valid_to
            await self.session.flush()

        logger.info("Pay limit %s updated", limit_id)
        return limit

    async def delete_limit(self, actor: Actor, limit_id: int) -> None:
        actor.require_admin()
        limit = await self._load(limit_id)

        async with atomic(self.session):
            await self.session.delete(limit)
            await self.session.flush()

        logger.info("Pay limit %s deleted", limit_id)

    # ===== Usage =====

    async def _workers_in_scope(self, actor: Actor, first_day: date, last_day: date) -> set[UUID]:
        entries = select(TimeEntry.owner_id).where(
            TimeEntry.work_date >= first_day, TimeEntry.work_date <= last_day
        )
        rates = select(RateRecord.worker_id).where(
            RateRecord.valid_from <= last_day,
            or_(RateRecord.valid_to.is_(None), RateRecord.valid_to >= first_day),
        )
        if not actor.is_office_or_admin:
            departments = list(actor.managed_departments)
            entries = entries.where(TimeEntry.department_id.in_(departments))
            rates = rates.where(RateRecord.department_id.in_(departments))

        workers = set((await self.session.execute(entries)).scalars().all())
        workers.update((await self.session.execute(rates)).scalars().all())
        return workers

    async def limit_overview(self, actor: Actor) -> list[LimitUsage]:
        """Usage of every worker the actor oversees, ordered by worker id.

        Department heads see workers with hours or rates in their departments;
        the office and administrators see everyone.

        Raises:
            AuthorizationError: If the actor is neither a department head nor
                office staff
        """
        if not (actor.is_department_head or actor.is_office_or_admin):
            raise AuthorizationError("Department head or business office role required")

        today = self.clock.today()
        first_day, last_day = quarter_bounds(today.year)
        current = await self.current_limit(today)
        limit_amount = current.amount if current is not None else Decimal("0.00")

        workers = await self._workers_in_scope(actor, first_day, last_day)
        if not workers:
            return []

        result = await self.session.execute(
            select(TimeEntry)
            .where(
                TimeEntry.owner_id.in_(workers),
                TimeEntry.work_date >= first_day,
                TimeEntry.work_date <= last_day,
            )
            .order_by(TimeEntry.work_date, TimeEntry.start_time)
        )
        entries = list(result.scalars().all())
        statuses = await self.ledger.entry_statuses([e.time_entry_id for e in entries])
        billable = [e for e in entries if statuses.get(e.time_entry_id) != EntryStatus.INVALID]

        amounts: dict[UUID, list[Decimal]] = defaultdict(list)
        departments: dict[UUID, set[UUID]] = defaultdict(set)
        for entry, line in zip(billable, await self.calculator.price_entries(billable)):
            amounts[entry.owner_id].append(line.amount)
            departments[entry.owner_id].add(entry.department_id)

        overview = [
            LimitUsage(
                worker_id=worker_id,
                department_ids=sorted(departments[worker_id], key=str),
                limit=limit_amount,
                used=statement_total(amounts[worker_id]),
            )
            for worker_id in sorted(workers, key=str)
        ]

        logger.debug("Limit overview for %s: %d workers", actor.actor_id, len(overview))
        return overview
