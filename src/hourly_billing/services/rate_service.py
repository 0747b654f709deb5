"""Hourly rate administration with effective-dated rollover."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hourly_billing.actor import Actor
from hourly_billing.calculators.rate_resolver import RateResolver
from hourly_billing.clock import Clock
from hourly_billing.database import atomic
from hourly_billing.errors import AuthorizationError, ValidationError
from hourly_billing.models import RateRecord

logger = logging.getLogger(__name__)


class RateService:
    """Maintains the rate history of (worker, department) pairs.

    A pair has at most one open-ended record. A new rate closes it on the
    day before the new one takes effect.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock,
        allow_backdated_rates: bool = False,
    ):
        self.session = session
        self.clock = clock
        self.allow_backdated_rates = allow_backdated_rates
        self.resolver = RateResolver(session)

    def _check_can_manage(self, actor: Actor, department_id: UUID) -> None:
        if not (actor.manages(department_id) or actor.is_office_or_admin):
            raise AuthorizationError(
                "Not allowed to manage rates of this department",
                department_id=str(department_id),
            )

    async def _locked_history(self, worker_id: UUID, department_id: UUID) -> list[RateRecord]:
        return await self.resolver.history(worker_id, department_id, for_update=True)

    async def update_rate(
        self,
        actor: Actor,
        worker_id: UUID,
        department_id: UUID,
        amount: Decimal,
        valid_from: date,
    ) -> RateRecord:
        """Start a new open-ended rate on ``valid_from``.

        Raises:
            AuthorizationError: If the actor neither heads the department nor
                works in the office
            ValidationError: If the amount is negative, the date is not in
                the future (unless backdating is allowed), or the date does not
                follow the current record's start
        """
        self._check_can_manage(actor, department_id)

        amount = Decimal(str(amount))
        if amount < 0:
            raise ValidationError("Rate must not be negative", amount=str(amount))

        today = self.clock.today()
        if not self.allow_backdated_rates and valid_from <= today:
            raise ValidationError(
                f"New rates must take effect after {today}",
                valid_from=valid_from.isoformat(),
            )

        async with atomic(self.session):
            records = await self._locked_history(worker_id, department_id)
            open_record = next((r for r in records if r.is_open_ended), None)

            if open_record is not None and valid_from <= open_record.valid_from:
                raise ValidationError(
                    f"New rate must start after the current rate's start {open_record.valid_from}",
                    valid_from=valid_from.isoformat(),
                    current_valid_from=open_record.valid_from.isoformat(),
                )
            for record in records:
                if record is not open_record and record.valid_to is not None and record.valid_to >= valid_from:
                    raise ValidationError(
                        "New rate overlaps an existing closed rate",
                        valid_from=valid_from.isoformat(),
                    )

            if open_record is not None:
                open_record.valid_to = valid_from - timedelta(days=1)
                await self.session.flush()
            record = RateRecord(
                worker_id=worker_id,
                department_id=department_id,
                amount=amount,
                valid_from=valid_from,
                valid_to=None,
            )
            self.session.add(record)
            try:
                await self.session.flush()
            except IntegrityError as exc:
                # one open record per pair is enforced by a partial unique index
                raise ValidationError(
                    "The rate was changed by someone else meanwhile",
                    valid_from=valid_from.isoformat(),
                ) from exc

        logger.info(
            "Rate of %s in %s set to %s from %s by %s",
            worker_id,
            department_id,
            amount,
            valid_from,
            actor.actor_id,
        )
        return record

    async def history(
        self,
        actor: Actor,
        worker_id: UUID,
        department_id: UUID | None = None,
    ) -> list[RateRecord]:
        """Rate records newest first, for one department or all of them."""
        if department_id is not None:
            if worker_id != actor.actor_id:
                self._check_can_manage(actor, department_id)
            return await self.resolver.history(worker_id, department_id)

        if worker_id != actor.actor_id and not actor.is_office_or_admin:
            raise AuthorizationError("Not allowed to view rates of this worker")

        result = await self.session.execute(
            select(RateRecord)
            .where(RateRecord.worker_id == worker_id)
            .order_by(RateRecord.department_id, RateRecord.valid_from.desc())
        )
        return list(result.scalars().all())

    async def current_rate(self, worker_id: UUID, department_id: UUID) -> RateRecord | None:
        """The open-ended record of a (worker, department) pair."""
        return await self.resolver.open_record(worker_id, department_id)
