"""Fixtures for API tests: app wired to the in-memory test database."""

from __future__ import annotations

import dataclasses
from collections.abc import AsyncGenerator, Iterable
from uuid import UUID

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from hourly_billing.api.app import create_app
from hourly_billing.api.dependencies import get_clock, get_db_session
from hourly_billing.config import get_settings


def identity(
    actor_id: UUID,
    departments: Iterable[UUID] = (),
    roles: Iterable[str] = (),
) -> dict[str, str]:
    """Identity headers for a request."""
    headers = {"X-Actor-ID": str(actor_id)}
    departments = list(departments)
    roles = list(roles)
    if departments:
        headers["X-Managed-Departments"] = ",".join(str(d) for d in departments)
    if roles:
        headers["X-Actor-Roles"] = ",".join(roles)
    return headers


@pytest.fixture
def app(session_factory, clock) -> FastAPI:
    application = create_app()

    async def override_session() -> AsyncGenerator:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    test_settings = dataclasses.replace(
        get_settings(),
        holiday_jurisdiction="DE-NW",
        allow_backdated_rates=True,
    )

    application.dependency_overrides[get_db_session] = override_session
    application.dependency_overrides[get_clock] = lambda: clock
    application.dependency_overrides[get_settings] = lambda: test_settings
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
