"""Pytest fixtures for billing tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date, datetime, time, timezone
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hourly_billing.actor import Actor
from hourly_billing.clock import FrozenClock
from hourly_billing.models import Base, Quarter, TimeEntry
from hourly_billing.services.quarters import seed_quarters
from hourly_billing.services.time_entry_service import EntryData, TimeEntryService

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

DEPT_A = UUID("00000000-0000-0000-0000-00000000000a")
DEPT_B = UUID("00000000-0000-0000-0000-00000000000b")
WORKER_ID = UUID("00000000-0000-0000-0000-000000000101")
OTHER_WORKER_ID = UUID("00000000-0000-0000-0000-000000000102")
HEAD_ID = UUID("00000000-0000-0000-0000-000000000201")
OFFICE_ID = UUID("00000000-0000-0000-0000-000000000301")
ADMIN_ID = UUID("00000000-0000-0000-0000-000000000401")


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT works on aiosqlite."""

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 5, 2, 9, 0, tzinfo=timezone.utc))


# ===== Actors =====


@pytest.fixture
def worker() -> Actor:
    return Actor(actor_id=WORKER_ID)


@pytest.fixture
def other_worker() -> Actor:
    return Actor(actor_id=OTHER_WORKER_ID)


@pytest.fixture
def head() -> Actor:
    """Department head of DEPT_A only."""
    return Actor(actor_id=HEAD_ID, managed_departments=frozenset({DEPT_A}))


@pytest.fixture
def office() -> Actor:
    return Actor(actor_id=OFFICE_ID, is_office=True)


@pytest.fixture
def admin() -> Actor:
    return Actor(actor_id=ADMIN_ID, is_admin=True)


# ===== Data =====


@pytest_asyncio.fixture
async def quarters(session: AsyncSession) -> list[Quarter]:
    """The four quarters of 2024."""
    seeded = await seed_quarters(session, 2024)
    await session.commit()
    return seeded


@pytest.fixture
def make_draft(session: AsyncSession, clock: FrozenClock):
    """Factory recording a draft entry through the service."""

    async def _make(
        actor: Actor,
        work_date: date,
        department_id: UUID = DEPT_A,
        start: time = time(10, 0),
        end: time = time(12, 30),
        label: str | None = "Training",
    ) -> TimeEntry:
        service = TimeEntryService(session, clock)
        return await service.create_entry(
            actor,
            EntryData(
                work_date=work_date,
                start_time=start,
                end_time=end,
                department_id=department_id,
                label=label,
            ),
        )

    return _make
