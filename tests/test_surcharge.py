"""Tests for the holiday surcharge engine and rule administration."""

from datetime import date
from decimal import Decimal

import pytest

from hourly_billing.calculators.surcharge import SurchargeEngine, SurchargeTable, select_rule
from hourly_billing.errors import AuthorizationError, NotFoundError, ValidationError
from hourly_billing.holidays import HolidayRepository, StaticHolidayCalendar
from hourly_billing.models import SurchargeRule
from hourly_billing.services.surcharge_service import SurchargeService

JURISDICTION = "DE-NW"
EASTER_MONDAY = date(2024, 4, 1)
ORDINARY_DAY = date(2024, 4, 2)


def rule(rule_id, multiplier, valid_from, valid_to=None) -> SurchargeRule:
    return SurchargeRule(
        surcharge_rule_id=rule_id,
        multiplier=Decimal(multiplier),
        valid_from=valid_from,
        valid_to=valid_to,
    )


class TestSurchargeTable:
    """Test multiplier resolution from preloaded rules."""

    calendar = StaticHolidayCalendar.for_jurisdiction(JURISDICTION, [EASTER_MONDAY])

    def test_holiday_with_rule(self):
        table = SurchargeTable([rule(1, "1.35", date(2024, 1, 1))], self.calendar, JURISDICTION)

        result = table.resolve(EASTER_MONDAY)

        assert result.multiplier == Decimal("1.35")
        assert result.is_holiday is True
        assert result.rule_id == 1

    def test_ordinary_day_is_never_surcharged(self):
        table = SurchargeTable([rule(1, "1.35", date(2024, 1, 1))], self.calendar, JURISDICTION)

        assert table.multiplier(ORDINARY_DAY) == Decimal("1.0")

    def test_holiday_without_rule(self):
        """No rule configured means no surcharge."""
        table = SurchargeTable([rule(1, "1.35", date(2024, 5, 1))], self.calendar, JURISDICTION)

        result = table.resolve(EASTER_MONDAY)

        assert result.multiplier == Decimal("1.0")
        assert result.is_holiday is True

    def test_other_jurisdiction(self):
        table = SurchargeTable([rule(1, "1.35", date(2024, 1, 1))], self.calendar, "DE-BY")

        assert table.multiplier(EASTER_MONDAY) == Decimal("1.0")

    def test_overlapping_rules_tie_break(self):
        """Latest start wins, then the most recently created rule."""
        rules = [
            rule(1, "1.25", date(2024, 1, 1)),
            rule(2, "1.50", date(2024, 3, 1)),
            rule(3, "1.40", date(2024, 3, 1), date(2024, 12, 31)),
        ]

        assert select_rule(rules, EASTER_MONDAY).surcharge_rule_id == 3
        assert select_rule(reversed(rules), EASTER_MONDAY).surcharge_rule_id == 3
        assert select_rule(rules, date(2024, 2, 1)).surcharge_rule_id == 1


class TestSurchargeEngine:
    async def test_engine_reads_stored_holidays(self, session):
        await HolidayRepository(session).add_holiday(EASTER_MONDAY, JURISDICTION, "Ostermontag")
        session.add(rule(None, "1.35", date(2024, 1, 1)))
        await session.flush()

        engine = SurchargeEngine(session, JURISDICTION)

        assert await engine.multiplier(EASTER_MONDAY) == Decimal("1.35")
        assert await engine.multiplier(ORDINARY_DAY) == Decimal("1.0")

    async def test_engine_with_injected_calendar(self, session):
        session.add(rule(None, "1.50", date(2024, 1, 1)))
        await session.flush()
        calendar = StaticHolidayCalendar.for_jurisdiction(JURISDICTION, [ORDINARY_DAY])

        engine = SurchargeEngine(session, JURISDICTION, calendar)

        assert await engine.multiplier(ORDINARY_DAY) == Decimal("1.50")
        assert await engine.multiplier(EASTER_MONDAY) == Decimal("1.0")


class TestSurchargeService:
    """Test rule administration."""

    async def test_create_and_list(self, session, admin):
        service = SurchargeService(session)

        created = await service.create_rule(admin, Decimal("1.35"), date(2024, 1, 1), date(2024, 12, 31))
        rules = await service.list_rules()

        assert [r.surcharge_rule_id for r in rules] == [created.surcharge_rule_id]

    async def test_multiplier_below_one_rejected(self, session, admin):
        with pytest.raises(ValidationError):
            await SurchargeService(session).create_rule(admin, Decimal("0.99"), date(2024, 1, 1))

    async def test_end_before_start_rejected(self, session, admin):
        with pytest.raises(ValidationError):
            await SurchargeService(session).create_rule(
                admin, Decimal("1.10"), date(2024, 6, 1), date(2024, 5, 31)
            )

    async def test_overlapping_window_rejected(self, session, admin):
        service = SurchargeService(session)
        await service.create_rule(admin, Decimal("1.35"), date(2024, 1, 1), date(2024, 6, 30))

        with pytest.raises(ValidationError):
            await service.create_rule(admin, Decimal("1.50"), date(2024, 6, 30))

        adjacent = await service.create_rule(admin, Decimal("1.50"), date(2024, 7, 1))
        assert adjacent.multiplier == Decimal("1.50")

    async def test_update_ignores_own_window(self, session, admin):
        service = SurchargeService(session)
        created = await service.create_rule(admin, Decimal("1.35"), date(2024, 1, 1), date(2024, 6, 30))

        updated = await service.update_rule(
            admin, created.surcharge_rule_id, Decimal("1.40"), date(2024, 1, 1), date(2024, 7, 31)
        )

        assert updated.multiplier == Decimal("1.40")
        assert updated.valid_to == date(2024, 7, 31)

    async def test_delete(self, session, admin):
        service = SurchargeService(session)
        created = await service.create_rule(admin, Decimal("1.35"), date(2024, 1, 1))

        await service.delete_rule(admin, created.surcharge_rule_id)

        assert await service.list_rules() == []
        with pytest.raises(NotFoundError):
            await service.delete_rule(admin, created.surcharge_rule_id)

    async def test_admin_only(self, session, office):
        with pytest.raises(AuthorizationError):
            await SurchargeService(session).create_rule(office, Decimal("1.35"), date(2024, 1, 1))
