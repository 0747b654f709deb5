"""Time entry API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from hourly_billing.api.dependencies import ClockDep, CurrentActor, DbSession
from hourly_billing.api.schemas import (
    EntryCreate,
    EntryDetailResponse,
    EntryFields,
    EntryRemovedResponse,
    EntryResponse,
    EntryUpdate,
    EntryUpdateResponse,
    ErrorResponse,
    FieldChangeResponse,
)
from hourly_billing.services import EntryData, TimeEntryService

router = APIRouter(prefix="/entries", tags=["entries"])

ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


def _entry_data(payload: EntryFields) -> EntryData:
    return EntryData(
        work_date=payload.work_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        department_id=payload.department_id,
        label=payload.label,
    )


@router.post(
    "",
    response_model=EntryResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def create_entry(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    payload: EntryCreate,
) -> EntryResponse:
    """Record a draft, or add an entry to an open statement."""
    entry = await TimeEntryService(db, clock).create_entry(
        actor,
        _entry_data(payload),
        owner_id=payload.owner_id,
        statement_id=payload.statement_id,
    )
    return EntryResponse.model_validate(entry)


@router.get("/drafts", response_model=list[EntryResponse])
async def list_drafts(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
) -> list[EntryResponse]:
    entries = await TimeEntryService(db, clock).drafts(actor)
    return [EntryResponse.model_validate(e) for e in entries]


@router.get("/{entry_id}", response_model=EntryDetailResponse, responses=ERRORS)
async def get_entry(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    entry_id: Annotated[UUID, Path()],
) -> EntryDetailResponse:
    """Entry with its merged status and correction history."""
    detail = await TimeEntryService(db, clock).get_entry(actor, entry_id)
    return EntryDetailResponse.model_validate(detail)


@router.put("/{entry_id}", response_model=EntryUpdateResponse, responses=ERRORS)
async def update_entry(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    entry_id: Annotated[UUID, Path()],
    payload: EntryUpdate,
) -> EntryUpdateResponse:
    """Audited correction of an entry."""
    entry, changes = await TimeEntryService(db, clock).update_entry(
        actor, entry_id, _entry_data(payload), payload.comment
    )
    return EntryUpdateResponse(
        entry=EntryResponse.model_validate(entry),
        changes=[FieldChangeResponse.model_validate(c) for c in changes],
    )


@router.delete("/{entry_id}", response_model=EntryRemovedResponse, responses=ERRORS)
async def remove_entry(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    entry_id: Annotated[UUID, Path()],
) -> EntryRemovedResponse:
    """Delete a draft, or unlink a submitted entry and mark it invalid."""
    deleted = await TimeEntryService(db, clock).remove_entry(actor, entry_id)
    return EntryRemovedResponse(time_entry_id=entry_id, deleted=deleted)
