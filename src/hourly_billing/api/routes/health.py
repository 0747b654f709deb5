"""Service status: database reachability and billing readiness.

Billing is ready once the database answers and the quarter covering today
has been seeded, since entries of an unseeded quarter cannot be submitted.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hourly_billing.api.dependencies import AppSettings, ClockDep, DbSession
from hourly_billing.clock import Clock
from hourly_billing.services.quarters import QuarterResolver

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class BillingHealth(BaseModel):
    status: str
    checked_at: datetime
    database: str
    holiday_jurisdiction: str
    current_quarter: str | None = None


async def _billing_state(db: AsyncSession, clock: Clock) -> tuple[bool, str | None]:
    """(database reachable, label of today's quarter if seeded)."""
    try:
        await db.execute(text("SELECT 1"))
        quarter = await QuarterResolver(db).quarter_for(clock.today())
    except SQLAlchemyError:
        logger.warning("Database unreachable during status check", exc_info=True)
        return False, None
    return True, quarter.label if quarter is not None else None


@router.get("/health", response_model=BillingHealth)
async def health_check(db: DbSession, clock: ClockDep, settings: AppSettings) -> BillingHealth:
    """Report database state, holiday jurisdiction and the current quarter."""
    reachable, quarter_label = await _billing_state(db, clock)
    return BillingHealth(
        status="healthy" if reachable and quarter_label else "degraded",
        checked_at=clock.now(),
        database="healthy" if reachable else "unhealthy",
        holiday_jurisdiction=settings.holiday_jurisdiction,
        current_quarter=quarter_label,
    )


@router.get("/ready")
async def readiness_check(db: DbSession, clock: ClockDep):
    """503 until the database answers and today's quarter is seeded."""
    reachable, quarter_label = await _billing_state(db, clock)
    if not reachable:
        reason = "database unreachable"
    elif quarter_label is None:
        reason = f"no quarter seeded for {clock.today()}"
    else:
        return {"status": "ready"}

    logger.info("Not ready: %s", reason)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "not_ready", "reason": reason},
    )


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
