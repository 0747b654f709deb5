"""Holiday surcharge resolution."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hourly_billing.holidays import HolidayCalendar, HolidayRepository
from hourly_billing.models import SurchargeRule

NO_SURCHARGE = Decimal("1.0")


def select_rule(rules: Iterable[SurchargeRule], on: date) -> SurchargeRule | None:
    """Pick the rule covering a date.

    Windows are kept disjoint on write; for overlapping legacy rows the
    latest ``valid_from`` wins, then the most recently created rule.
    """
    covering = [r for r in rules if r.is_active_on(on)]
    if not covering:
        return None
    return max(covering, key=lambda r: (r.valid_from, r.surcharge_rule_id or 0))


@dataclass(frozen=True)
class SurchargeResult:
    """Multiplier applied to one work date."""

    multiplier: Decimal
    is_holiday: bool
    rule_id: int | None = None


class SurchargeTable:
    """Preloaded rules plus calendar for pricing many dates."""

    def __init__(
        self,
        rules: Sequence[SurchargeRule],
        calendar: HolidayCalendar,
        jurisdiction: str,
    ):
        self.rules = tuple(rules)
        self.calendar = calendar
        self.jurisdiction = jurisdiction

    def resolve(self, on: date) -> SurchargeResult:
        if not self.calendar.is_holiday(on, self.jurisdiction):
            return SurchargeResult(multiplier=NO_SURCHARGE, is_holiday=False)

        rule = select_rule(self.rules, on)
        if rule is None:
            # Holiday without a configured rule pays the base rate
            return SurchargeResult(multiplier=NO_SURCHARGE, is_holiday=True)
        return SurchargeResult(
            multiplier=Decimal(rule.multiplier),
            is_holiday=True,
            rule_id=rule.surcharge_rule_id,
        )

    def multiplier(self, on: date) -> Decimal:
        return self.resolve(on).multiplier


class SurchargeEngine:
    """Resolves the holiday-pay multiplier for work dates."""

    def __init__(
        self,
        session: AsyncSession,
        jurisdiction: str,
        calendar: HolidayCalendar | None = None,
    ):
        self.session = session
        self.jurisdiction = jurisdiction
        self.calendar = calendar

    async def load(self, start: date, end: date) -> SurchargeTable:
        """Load rules and the holiday calendar needed for ``start..end``."""
        result = await self.session.execute(
            select(SurchargeRule)
            .where(
                SurchargeRule.valid_from <= end,
                (SurchargeRule.valid_to.is_(None) | (SurchargeRule.valid_to >= start)),
            )
            .order_by(SurchargeRule.valid_from)
        )
        rules = list(result.scalars().all())

        calendar = self.calendar
        if calendar is None:
            calendar = await HolidayRepository(self.session).calendar_for(start, end, self.jurisdiction)

        return SurchargeTable(rules, calendar, self.jurisdiction)

    async def resolve(self, on: date) -> SurchargeResult:
        table = await self.load(on, on)
        return table.resolve(on)

    async def multiplier(self, on: date) -> Decimal:
        """Multiplier for a single date (1.0 unless a holiday with a rule)."""
        return (await self.resolve(on)).multiplier
