"""Statement API endpoints: assembly, queues, approval chain."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from hourly_billing.api.dependencies import AppSettings, ClockDep, CurrentActor, DbSession
from hourly_billing.api.schemas import (
    ApprovalRequest,
    AssembleRequest,
    BulkFinalizeRequest,
    BulkFinalizeResponse,
    ErrorResponse,
    RejectRequest,
    StatementListResponse,
    StatementResponse,
    TransitionResponse,
)
from hourly_billing.services import ApprovalWorkflow, StatementAssembler, StatementReader

router = APIRouter(prefix="/statements", tags=["statements"])

ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


# ============================================================================
# Assembly and worker views
# ============================================================================


@router.post(
    "",
    response_model=StatementListResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def assemble_statements(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    settings: AppSettings,
    payload: AssembleRequest,
) -> StatementListResponse:
    """Group draft entries into one statement per department."""
    statements = await StatementAssembler(db, clock).assemble(
        payload.entry_ids, actor, payload.comment
    )
    reader = StatementReader(db, settings.holiday_jurisdiction)
    views = await reader.views([s.statement_id for s in statements])
    return StatementListResponse.from_views(views)


@router.get("/mine", response_model=StatementListResponse)
async def my_statements(
    db: DbSession,
    actor: CurrentActor,
    settings: AppSettings,
) -> StatementListResponse:
    """Statements of the calling worker, newest first."""
    views = await StatementReader(db, settings.holiday_jurisdiction).my_statements(actor)
    return StatementListResponse.from_views(views)


# ============================================================================
# Approver queues and history
# ============================================================================


@router.get("/awaiting-approval", response_model=StatementListResponse)
async def awaiting_department_head(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    settings: AppSettings,
) -> StatementListResponse:
    """Created statements of the departments the caller heads."""
    statements = await ApprovalWorkflow(db, clock).awaiting_department_head(actor)
    reader = StatementReader(db, settings.holiday_jurisdiction)
    return StatementListResponse.from_views(await reader.views([s.statement_id for s in statements]))


@router.get("/awaiting-office", response_model=StatementListResponse, responses=ERRORS)
async def awaiting_office(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    settings: AppSettings,
) -> StatementListResponse:
    statements = await ApprovalWorkflow(db, clock).awaiting_office(actor)
    reader = StatementReader(db, settings.holiday_jurisdiction)
    return StatementListResponse.from_views(await reader.views([s.statement_id for s in statements]))


@router.get("/awaiting-payment", response_model=StatementListResponse, responses=ERRORS)
async def awaiting_payment(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    settings: AppSettings,
) -> StatementListResponse:
    statements = await ApprovalWorkflow(db, clock).awaiting_payment(actor)
    reader = StatementReader(db, settings.holiday_jurisdiction)
    return StatementListResponse.from_views(await reader.views([s.statement_id for s in statements]))


@router.get("/history", response_model=StatementListResponse, responses=ERRORS)
async def statement_history(
    db: DbSession,
    actor: CurrentActor,
    settings: AppSettings,
    year: Annotated[int | None, Query(ge=1900, le=9999)] = None,
    quarter: Annotated[str | None, Query(pattern="^[Qq][1-4]$")] = None,
    department_id: UUID | None = None,
) -> StatementListResponse:
    """Statements of the caller's departments (all for the office) by period."""
    views = await StatementReader(db, settings.holiday_jurisdiction).history(
        actor, year=year, quarter=quarter, department_id=department_id
    )
    return StatementListResponse.from_views(views)


@router.post("/finalize-bulk", response_model=BulkFinalizeResponse, responses=ERRORS)
async def finalize_bulk(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    payload: BulkFinalizeRequest,
) -> BulkFinalizeResponse:
    """Pay out every listed statement that is ready for payment."""
    outcome = await ApprovalWorkflow(db, clock).finalize_bulk(
        payload.statement_ids, actor, payload.comment
    )
    return BulkFinalizeResponse(paid=outcome.paid, skipped=outcome.skipped, count=outcome.count)


# ============================================================================
# Single statement
# ============================================================================


@router.get("/{statement_id}", response_model=StatementResponse, responses=ERRORS)
async def get_statement(
    db: DbSession,
    actor: CurrentActor,
    settings: AppSettings,
    statement_id: Annotated[UUID, Path()],
) -> StatementResponse:
    view = await StatementReader(db, settings.holiday_jurisdiction).statement_detail(
        actor, statement_id
    )
    return StatementResponse.from_view(view)


@router.post("/{statement_id}/approve", response_model=TransitionResponse, responses=ERRORS)
async def approve_statement(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    statement_id: Annotated[UUID, Path()],
    payload: ApprovalRequest | None = None,
) -> TransitionResponse:
    """Department head approval."""
    comment = payload.comment if payload else None
    result = await ApprovalWorkflow(db, clock).approve(statement_id, actor, comment)
    return TransitionResponse.model_validate(result)


@router.post("/{statement_id}/reject", response_model=TransitionResponse, responses=ERRORS)
async def reject_statement(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    statement_id: Annotated[UUID, Path()],
    payload: RejectRequest,
) -> TransitionResponse:
    """Reject a statement; its entries become invalid."""
    result = await ApprovalWorkflow(db, clock).reject(statement_id, actor, payload.reason)
    return TransitionResponse.model_validate(result)


@router.post("/{statement_id}/finalize", response_model=TransitionResponse, responses=ERRORS)
async def finalize_statement(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    statement_id: Annotated[UUID, Path()],
    payload: ApprovalRequest | None = None,
) -> TransitionResponse:
    """Business office step towards payout."""
    comment = payload.comment if payload else None
    result = await ApprovalWorkflow(db, clock).finalize(statement_id, actor, comment)
    return TransitionResponse.model_validate(result)
