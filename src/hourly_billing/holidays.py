"""Holiday calendar providers."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hourly_billing.models import Holiday


class HolidayCalendar(Protocol):
    """Answers whether a date is a public holiday in a jurisdiction."""

    def is_holiday(self, on: date, jurisdiction: str) -> bool: ...


class StaticHolidayCalendar:
    """In-memory calendar built from (date, jurisdiction) pairs."""

    def __init__(self, holidays: Iterable[tuple[date, str]] = ()):
        self._holidays: set[tuple[date, str]] = set(holidays)

    @classmethod
    def for_jurisdiction(cls, jurisdiction: str, dates: Iterable[date]) -> StaticHolidayCalendar:
        return cls((d, jurisdiction) for d in dates)

    def is_holiday(self, on: date, jurisdiction: str) -> bool:
        return (on, jurisdiction) in self._holidays

    def add(self, on: date, jurisdiction: str) -> None:
        self._holidays.add((on, jurisdiction))


class HolidayRepository:
    """Loads stored holidays into a calendar for a date window."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def calendar_for(
        self,
        start: date,
        end: date,
        jurisdiction: str,
    ) -> StaticHolidayCalendar:
        """Build a calendar covering ``start..end`` (inclusive) for a jurisdiction."""
        result = await self.session.execute(
            select(Holiday.holiday_date).where(
                Holiday.jurisdiction == jurisdiction,
                Holiday.holiday_date >= start,
                Holiday.holiday_date <= end,
            )
        )
        return StaticHolidayCalendar.for_jurisdiction(jurisdiction, result.scalars().all())

    async def add_holiday(self, on: date, jurisdiction: str, name: str | None = None) -> Holiday:
        holiday = Holiday(holiday_date=on, jurisdiction=jurisdiction, name=name)
        self.session.add(holiday)
        await self.session.flush()
        return holiday
