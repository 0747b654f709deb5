"""Hourly rate resolution over effective-dated records."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hourly_billing.models import RateRecord

ZERO_RATE = Decimal("0")


def find_covering_rate(records: Iterable[RateRecord], as_of_date: date) -> RateRecord | None:
    """Return the record whose window covers the date.

    Records of one (worker, department) never overlap, so at most one
    matches; the latest ``valid_from`` wins should bad data say otherwise.
    """
    candidates = [r for r in records if r.is_active_on(as_of_date)]
    if not candidates:
        return None
    return max(candidates, key=lambda r: r.valid_from)


@dataclass(frozen=True)
class RateTable:
    """All rate records of one worker in one department."""

    worker_id: UUID
    department_id: UUID
    records: tuple[RateRecord, ...]

    def rate_on(self, as_of_date: date) -> Decimal:
        """Rate effective on a date, or zero when none is configured."""
        record = find_covering_rate(self.records, as_of_date)
        return record.amount if record is not None else ZERO_RATE


class RateResolver:
    """Resolves a worker's hourly rate per department.

    Absence of a rate never blocks the workflow: an uncovered date resolves
    to zero and yields a zero-valued line item.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve_rate(
        self,
        worker_id: UUID,
        department_id: UUID,
        as_of_date: date,
    ) -> Decimal:
        """Resolve the rate effective on ``as_of_date``.

        Args:
            worker_id: The worker the rate belongs to
            department_id: The department the hours were worked in
            as_of_date: The work date

        Returns:
            The rate amount, or ``Decimal("0")`` if no record covers the date
        """
        result = await self.session.execute(
            select(RateRecord).where(
                RateRecord.worker_id == worker_id,
                RateRecord.department_id == department_id,
                RateRecord.valid_from <= as_of_date,
                (RateRecord.valid_to.is_(None) | (RateRecord.valid_to >= as_of_date)),
            )
        )
        record = find_covering_rate(result.scalars().all(), as_of_date)
        return record.amount if record is not None else ZERO_RATE

    async def rate_table(self, worker_id: UUID, department_id: UUID) -> RateTable:
        """Load every record of a (worker, department) pair for repeated lookups."""
        records = await self.history(worker_id, department_id)
        return RateTable(worker_id=worker_id, department_id=department_id, records=tuple(records))

    async def history(
        self,
        worker_id: UUID,
        department_id: UUID,
        for_update: bool = False,
    ) -> list[RateRecord]:
        """All records of a (worker, department) pair, newest first.

        With ``for_update`` the rows stay locked until the transaction ends.
        """
        query = (
            select(RateRecord)
            .where(
                RateRecord.worker_id == worker_id,
                RateRecord.department_id == department_id,
            )
            .order_by(RateRecord.valid_from.desc())
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def open_record(self, worker_id: UUID, department_id: UUID) -> RateRecord | None:
        """The open-ended (current) record of a (worker, department) pair."""
        result = await self.session.execute(
            select(RateRecord)
            .where(
                RateRecord.worker_id == worker_id,
                RateRecord.department_id == department_id,
                RateRecord.valid_to.is_(None),
            )
            .order_by(RateRecord.valid_from.desc())
        )
        return result.scalars().first()
