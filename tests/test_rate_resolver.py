"""Tests for rate resolution and rate rollover."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from hourly_billing.calculators.rate_resolver import RateResolver, find_covering_rate
from hourly_billing.errors import AuthorizationError, ValidationError
from hourly_billing.models import RateRecord
from hourly_billing.services.rate_service import RateService

from .conftest import DEPT_A, DEPT_B, WORKER_ID


async def add_rate(session, amount, valid_from, valid_to=None, department_id=DEPT_A):
    record = RateRecord(
        worker_id=WORKER_ID,
        department_id=department_id,
        amount=Decimal(amount),
        valid_from=valid_from,
        valid_to=valid_to,
    )
    session.add(record)
    await session.flush()
    return record


class TestRateResolver:
    """Test temporal rate lookup."""

    async def test_resolve_rate_simple(self, session):
        await add_rate(session, "12.00", date(2024, 1, 1))
        resolver = RateResolver(session)

        rate = await resolver.resolve_rate(WORKER_ID, DEPT_A, date(2024, 5, 2))

        assert rate == Decimal("12.00")

    async def test_resolve_rate_not_covered_is_zero(self, session):
        """Absence of a rate yields zero, it never blocks."""
        await add_rate(session, "12.00", date(2024, 3, 1))
        resolver = RateResolver(session)

        assert await resolver.resolve_rate(WORKER_ID, DEPT_A, date(2024, 2, 28)) == Decimal("0")
        assert await resolver.resolve_rate(WORKER_ID, DEPT_B, date(2024, 5, 2)) == Decimal("0")

    async def test_resolve_rate_respects_effective_dates(self, session):
        await add_rate(session, "12.00", date(2024, 1, 1), date(2024, 6, 30))
        await add_rate(session, "14.50", date(2024, 7, 1))
        resolver = RateResolver(session)

        assert await resolver.resolve_rate(WORKER_ID, DEPT_A, date(2024, 6, 30)) == Decimal("12.00")
        assert await resolver.resolve_rate(WORKER_ID, DEPT_A, date(2024, 7, 1)) == Decimal("14.50")
        assert await resolver.resolve_rate(WORKER_ID, DEPT_A, date(2031, 1, 1)) == Decimal("14.50")

    async def test_rate_table_matches_resolver(self, session):
        await add_rate(session, "12.00", date(2024, 1, 1), date(2024, 6, 30))
        await add_rate(session, "14.50", date(2024, 7, 1))
        resolver = RateResolver(session)

        table = await resolver.rate_table(WORKER_ID, DEPT_A)

        for day in (date(2023, 12, 31), date(2024, 1, 1), date(2024, 6, 30), date(2024, 7, 1)):
            assert table.rate_on(day) == await resolver.resolve_rate(WORKER_ID, DEPT_A, day)

    def test_find_covering_rate_without_records(self):
        assert find_covering_rate([], date(2024, 1, 1)) is None


class TestRateRollover:
    """Test RateService.update_rate."""

    async def test_rollover_closes_open_record(self, session, clock, head):
        await add_rate(session, "12.00", date(2024, 1, 1))
        await session.commit()
        service = RateService(session, clock)

        new = await service.update_rate(head, WORKER_ID, DEPT_A, Decimal("13.00"), date(2024, 6, 1))
        await session.commit()

        history = await service.history(head, WORKER_ID, DEPT_A)
        assert [r.amount for r in history] == [Decimal("13.00"), Decimal("12.00")]
        assert history[1].valid_to == date(2024, 5, 31)
        assert new.valid_to is None

        resolver = RateResolver(session)
        assert await resolver.resolve_rate(WORKER_ID, DEPT_A, date(2024, 5, 31)) == Decimal("12.00")
        assert await resolver.resolve_rate(WORKER_ID, DEPT_A, date(2024, 6, 1)) == Decimal("13.00")

    async def test_single_open_record_after_rollovers(self, session, clock, office):
        service = RateService(session, clock)
        await service.update_rate(office, WORKER_ID, DEPT_A, Decimal("12.00"), date(2024, 6, 1))
        await service.update_rate(office, WORKER_ID, DEPT_A, Decimal("13.00"), date(2024, 9, 1))
        await service.update_rate(office, WORKER_ID, DEPT_A, Decimal("14.00"), date(2025, 1, 1))

        open_count = await session.scalar(
            select(func.count())
            .select_from(RateRecord)
            .where(
                RateRecord.worker_id == WORKER_ID,
                RateRecord.department_id == DEPT_A,
                RateRecord.valid_to.is_(None),
            )
        )
        assert open_count == 1
        current = await service.current_rate(WORKER_ID, DEPT_A)
        assert current.amount == Decimal("14.00")

    async def test_new_start_must_follow_current_start(self, session, clock, head):
        await add_rate(session, "12.00", date(2024, 8, 1))
        service = RateService(session, clock)

        with pytest.raises(ValidationError):
            await service.update_rate(head, WORKER_ID, DEPT_A, Decimal("13.00"), date(2024, 8, 1))
        with pytest.raises(ValidationError):
            await service.update_rate(head, WORKER_ID, DEPT_A, Decimal("13.00"), date(2024, 7, 1))

    async def test_new_rate_must_lie_in_future(self, session, clock, head):
        """Clock says 2024-05-02."""
        service = RateService(session, clock)

        with pytest.raises(ValidationError):
            await service.update_rate(head, WORKER_ID, DEPT_A, Decimal("13.00"), date(2024, 5, 2))

    async def test_backdating_when_allowed(self, session, clock, head):
        service = RateService(session, clock, allow_backdated_rates=True)

        record = await service.update_rate(head, WORKER_ID, DEPT_A, Decimal("13.00"), date(2024, 1, 1))

        assert record.valid_from == date(2024, 1, 1)

    async def test_negative_amount_rejected(self, session, clock, head):
        service = RateService(session, clock)

        with pytest.raises(ValidationError):
            await service.update_rate(head, WORKER_ID, DEPT_A, Decimal("-1.00"), date(2024, 6, 1))

    async def test_only_department_head_or_office(self, session, clock, head, worker):
        service = RateService(session, clock)

        with pytest.raises(AuthorizationError):
            await service.update_rate(head, WORKER_ID, DEPT_B, Decimal("13.00"), date(2024, 6, 1))
        with pytest.raises(AuthorizationError):
            await service.update_rate(worker, WORKER_ID, DEPT_A, Decimal("99.00"), date(2024, 6, 1))

    async def test_worker_sees_own_rates(self, session, clock, worker, other_worker):
        await add_rate(session, "12.00", date(2024, 1, 1))
        await add_rate(session, "15.00", date(2024, 1, 1), department_id=DEPT_B)
        service = RateService(session, clock)

        mine = await service.history(worker, WORKER_ID)
        assert {r.department_id for r in mine} == {DEPT_A, DEPT_B}

        with pytest.raises(AuthorizationError):
            await service.history(other_worker, WORKER_ID)


class TestConcurrentRateChanges:
    """At most one open-ended record per (worker, department), even under races."""

    async def test_database_rejects_second_open_record(self, session):
        await add_rate(session, "12.00", date(2024, 1, 1))

        with pytest.raises(IntegrityError):
            await add_rate(session, "13.00", date(2024, 6, 1))

    async def test_overtaken_rate_change_fails_cleanly(
        self, session, session_factory, clock, head, monkeypatch
    ):
        original = RateService._locked_history

        async def history_then_overtaken(self, worker_id, department_id):
            if self.session is not session:
                return await original(self, worker_id, department_id)
            async with session_factory() as other:
                await RateService(other, clock, allow_backdated_rates=True).update_rate(
                    head, worker_id, department_id, Decimal("13.00"), date(2024, 1, 1)
                )
                await other.commit()
            # what this transaction saw before the other one committed
            return []

        monkeypatch.setattr(RateService, "_locked_history", history_then_overtaken)
        service = RateService(session, clock, allow_backdated_rates=True)

        with pytest.raises(ValidationError):
            await service.update_rate(head, WORKER_ID, DEPT_A, Decimal("14.00"), date(2024, 3, 1))

        open_records = (
            await session.execute(select(RateRecord).where(RateRecord.valid_to.is_(None)))
        ).scalars().all()
        assert [r.amount for r in open_records] == [Decimal("13.00")]
