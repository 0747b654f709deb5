"""Pay limit administration and usage endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, Response, status

from hourly_billing.api.dependencies import AppSettings, ClockDep, CurrentActor, DbSession
from hourly_billing.api.schemas import (
    ErrorResponse,
    LimitUsageResponse,
    PayLimitCreate,
    PayLimitResponse,
)
from hourly_billing.services import LimitService

router = APIRouter(prefix="/limits", tags=["limits"])

ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.get("", response_model=list[PayLimitResponse], responses=ERRORS)
async def list_limits(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    settings: AppSettings,
) -> list[PayLimitResponse]:
    actor.require_admin()
    limits = await LimitService(db, clock, settings.holiday_jurisdiction).list_limits()
    return [PayLimitResponse.model_validate(limit) for limit in limits]


@router.get("/overview", response_model=list[LimitUsageResponse], responses=ERRORS)
async def limit_overview(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    settings: AppSettings,
) -> list[LimitUsageResponse]:
    """This year's earnings of every worker in scope against the current limit."""
    usages = await LimitService(db, clock, settings.holiday_jurisdiction).limit_overview(actor)
    return [LimitUsageResponse.model_validate(usage) for usage in usages]


@router.post(
    "",
    response_model=PayLimitResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def create_limit(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    settings: AppSettings,
    payload: PayLimitCreate,
) -> PayLimitResponse:
    limit = await LimitService(db, clock, settings.holiday_jurisdiction).create_limit(
        actor, payload.amount, payload.valid_from, payload.valid_to
    )
    return PayLimitResponse.model_validate(limit)


@router.put("/{limit_id}", response_model=PayLimitResponse, responses=ERRORS)
async def update_limit(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    settings: AppSettings,
    limit_id: Annotated[int, Path()],
    payload: PayLimitCreate,
) -> PayLimitResponse:
    limit = await LimitService(db, clock, settings.holiday_jurisdiction).update_limit(
        actor, limit_id, payload.amount, payload.valid_from, payload.valid_to
    )
    return PayLimitResponse.model_validate(limit)


@router.delete("/{limit_id}", status_code=status.HTTP_204_NO_CONTENT, responses=ERRORS)
async def delete_limit(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    settings: AppSettings,
    limit_id: Annotated[int, Path()],
) -> Response:
    await LimitService(db, clock, settings.holiday_jurisdiction).delete_limit(actor, limit_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
