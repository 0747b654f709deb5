"""Quarter lookup, calendar bounds and seeding."""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hourly_billing.errors import ValidationError
from hourly_billing.models import Quarter

logger = logging.getLogger(__name__)

QUARTER_LABELS = ("Q1", "Q2", "Q3", "Q4")

# (start month, end month, end day)
_QUARTER_MONTHS = {
    "Q1": (1, 3, 31),
    "Q2": (4, 6, 30),
    "Q3": (7, 9, 30),
    "Q4": (10, 12, 31),
}


def quarter_bounds(year: int, quarter: str | None = None) -> tuple[date, date]:
    """Calendar bounds of a quarter label, or the whole year when None.

    >>> quarter_bounds(2024, "Q2")
    (datetime.date(2024, 4, 1), datetime.date(2024, 6, 30))
    """
    if quarter is None:
        return date(year, 1, 1), date(year, 12, 31)

    months = _QUARTER_MONTHS.get(quarter.upper())
    if months is None:
        raise ValidationError(f"Unknown quarter '{quarter}'", quarter=quarter)
    start_month, end_month, end_day = months
    return date(year, start_month, 1), date(year, end_month, end_day)


async def seed_quarters(session: AsyncSession, year: int) -> list[Quarter]:
    """Insert the four quarters of a year; existing ones are left untouched."""
    result = await session.execute(
        select(Quarter).where(
            Quarter.start_date >= date(year, 1, 1),
            Quarter.start_date <= date(year, 12, 31),
        )
    )
    existing = {q.start_date: q for q in result.scalars().all()}

    quarters = []
    for label in QUARTER_LABELS:
        start, end = quarter_bounds(year, label)
        quarter = existing.get(start)
        if quarter is None:
            quarter = Quarter(start_date=start, end_date=end)
            session.add(quarter)
            logger.info("Seeded quarter %s %s", label, year)
        quarters.append(quarter)

    await session.flush()
    return quarters


class QuarterResolver:
    """Maps dates to the pre-seeded quarter covering them."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def quarter_for(self, on: date) -> Quarter | None:
        """Return the quarter whose range covers ``on``, or None."""
        result = await self.session.execute(
            select(Quarter).where(Quarter.start_date <= on, Quarter.end_date >= on)
        )
        return result.scalars().first()

    async def get(self, quarter_id) -> Quarter | None:
        return await self.session.get(Quarter, quarter_id)
