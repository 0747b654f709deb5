"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from hourly_billing.actor import Actor
from hourly_billing.clock import Clock, SystemClock
from hourly_billing.config import Settings, get_settings
from hourly_billing.database import get_session

ROLE_OFFICE = "office"
ROLE_ADMIN = "admin"


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency, committing when the request succeeds."""
    async with get_session() as session:
        yield session


def _parse_uuid(value: str, header: str) -> UUID:
    try:
        return UUID(value.strip())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header} format",
        )


async def get_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_managed_departments: Annotated[str | None, Header()] = None,
    x_actor_roles: Annotated[str | None, Header()] = None,
) -> Actor:
    """Resolve the calling actor from identity headers."""
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-ID header is required",
        )

    departments = frozenset(
        _parse_uuid(part, "X-Managed-Departments")
        for part in (x_managed_departments or "").split(",")
        if part.strip()
    )
    roles = {part.strip().lower() for part in (x_actor_roles or "").split(",") if part.strip()}

    return Actor(
        actor_id=_parse_uuid(x_actor_id, "X-Actor-ID"),
        managed_departments=departments,
        is_office=ROLE_OFFICE in roles,
        is_admin=ROLE_ADMIN in roles,
    )


_system_clock = SystemClock()


def get_clock() -> Clock:
    return _system_clock


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CurrentActor = Annotated[Actor, Depends(get_actor)]
ClockDep = Annotated[Clock, Depends(get_clock)]
AppSettings = Annotated[Settings, Depends(get_settings)]
