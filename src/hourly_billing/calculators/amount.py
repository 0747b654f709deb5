"""Amount calculation: duration x rate x holiday multiplier.

Every read path prices entries through ``AmountCalculator``; amounts are
never stored, so rate and surcharge corrections show up on the next read.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from hourly_billing.calculators.rate_resolver import RateResolver, RateTable
from hourly_billing.calculators.surcharge import SurchargeEngine
from hourly_billing.calculators.types import CENT, LineItem, StatementPricing
from hourly_billing.holidays import HolidayCalendar

if TYPE_CHECKING:
    from hourly_billing.models import Statement, TimeEntry


def _to_decimal(value: Decimal | float | int | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def line_amount(
    duration: Decimal | float | str,
    rate: Decimal | float | str,
    multiplier: Decimal | float | str,
) -> Decimal:
    """round(duration x rate x multiplier, 2), half away from zero."""
    raw = _to_decimal(duration) * _to_decimal(rate) * _to_decimal(multiplier)
    return raw.quantize(CENT, rounding=ROUND_HALF_UP)


def statement_total(amounts: Iterable[Decimal]) -> Decimal:
    """Sum of already rounded line amounts."""
    return sum(amounts, Decimal("0.00"))


class AmountCalculator:
    """Prices time entries from rates and surcharge rules."""

    def __init__(
        self,
        session: AsyncSession,
        jurisdiction: str,
        calendar: HolidayCalendar | None = None,
    ):
        self.rate_resolver = RateResolver(session)
        self.surcharge_engine = SurchargeEngine(session, jurisdiction, calendar)

    async def price_entries(self, entries: Sequence[TimeEntry]) -> list[LineItem]:
        """Price a batch of entries with one rule/calendar load."""
        if not entries:
            return []

        start = min(e.work_date for e in entries)
        end = max(e.work_date for e in entries)
        surcharges = await self.surcharge_engine.load(start, end)

        rate_tables: dict[tuple[UUID, UUID], RateTable] = {}
        lines: list[LineItem] = []

        for entry in entries:
            key = (entry.owner_id, entry.department_id)
            if key not in rate_tables:
                rate_tables[key] = await self.rate_resolver.rate_table(*key)

            rate = rate_tables[key].rate_on(entry.work_date)
            surcharge = surcharges.resolve(entry.work_date)
            duration = _to_decimal(entry.duration)

            lines.append(
                LineItem(
                    time_entry_id=entry.time_entry_id,
                    work_date=entry.work_date,
                    start_time=entry.start_time,
                    end_time=entry.end_time,
                    duration=duration,
                    label=entry.label,
                    rate=rate,
                    multiplier=surcharge.multiplier,
                    is_holiday=surcharge.is_holiday,
                    amount=line_amount(duration, rate, surcharge.multiplier),
                )
            )

        return lines

    async def price_entry(self, entry: TimeEntry) -> LineItem:
        lines = await self.price_entries([entry])
        return lines[0]

    async def price_statement(self, statement: Statement) -> StatementPricing:
        """Price a statement whose ``entries`` relationship is loaded."""
        lines = await self.price_entries(list(statement.entries))
        return StatementPricing(statement_id=statement.statement_id, lines=lines)
