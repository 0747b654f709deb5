"""Hourly rate API endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from hourly_billing.api.dependencies import AppSettings, ClockDep, CurrentActor, DbSession
from hourly_billing.api.schemas import ErrorResponse, RateCreate, RateResponse
from hourly_billing.services import RateService

router = APIRouter(prefix="/rates", tags=["rates"])


@router.get(
    "/history",
    response_model=list[RateResponse],
    responses={403: {"model": ErrorResponse}},
)
async def rate_history(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    settings: AppSettings,
    worker_id: UUID,
    department_id: UUID | None = None,
) -> list[RateResponse]:
    """Rate records of a worker, newest first."""
    service = RateService(db, clock, settings.allow_backdated_rates)
    records = await service.history(actor, worker_id, department_id)
    return [RateResponse.model_validate(r) for r in records]


@router.get("/mine", response_model=list[RateResponse])
async def my_rates(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    settings: AppSettings,
) -> list[RateResponse]:
    """Rate records of the calling worker across departments."""
    service = RateService(db, clock, settings.allow_backdated_rates)
    records = await service.history(actor, actor.actor_id)
    return [RateResponse.model_validate(r) for r in records]


@router.post(
    "",
    response_model=RateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_rate(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    settings: AppSettings,
    payload: RateCreate,
) -> RateResponse:
    """Start a new rate, closing the current one the day before."""
    service = RateService(db, clock, settings.allow_backdated_rates)
    record = await service.update_rate(
        actor,
        payload.worker_id,
        payload.department_id,
        payload.amount,
        payload.valid_from,
    )
    return RateResponse.model_validate(record)
