"""Time entry service: drafts, audited corrections and removal."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from hourly_billing.actor import Actor
from hourly_billing.clock import Clock
from hourly_billing.database import atomic
from hourly_billing.errors import AuthorizationError, NotFoundError, StateError, ValidationError
from hourly_billing.models import AuditLogEntry, EntryStatusLog, Quarter, Statement, TimeEntry
from hourly_billing.services.audit_service import AuditService, FieldChange, diff_fields
from hourly_billing.services.state_machine import (
    EntryStatus,
    StatementStateMachine,
)
from hourly_billing.services.status_ledger import StatusLedger, ordering_key

logger = logging.getLogger(__name__)

HOURS_PRECISION = Decimal("0.0001")


def compute_duration(start: time, end: time) -> Decimal:
    """Hours between two times of day, counted in whole minutes.

    >>> compute_duration(time(10, 0), time(12, 30))
    Decimal('2.5000')
    """
    start_minutes = start.hour * 60 + start.minute
    end_minutes = end.hour * 60 + end.minute
    if end_minutes <= start_minutes:
        raise ValidationError(
            "End time must be after start time",
            start_time=start.isoformat(),
            end_time=end.isoformat(),
        )
    return (Decimal(end_minutes - start_minutes) / Decimal(60)).quantize(HOURS_PRECISION)


@dataclass
class EntryData:
    """Staged values of a time entry as supplied by the caller."""

    work_date: date
    start_time: time
    end_time: time
    department_id: UUID
    label: str | None = None

    def as_fields(self) -> dict:
        return {
            "work_date": self.work_date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": compute_duration(self.start_time, self.end_time),
            "department_id": self.department_id,
            "label": self.label,
        }


@dataclass
class HistoryItem:
    """One line of an entry's merged status and audit history."""

    kind: str  # "status" or "audit"
    recorded_at: datetime
    actor_id: UUID
    comment: str | None = None
    status_code: int | None = None
    field_name: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    sequence: int | None = None


@dataclass
class EntryDetail:
    entry: TimeEntry
    status: int | None
    statement_status: int | None
    history: list[HistoryItem] = field(default_factory=list)


def _entry_fields(entry: TimeEntry) -> dict:
    return {
        "work_date": entry.work_date,
        "start_time": entry.start_time,
        "end_time": entry.end_time,
        "duration": entry.duration,
        "department_id": entry.department_id,
        "label": entry.label,
        "statement_id": entry.statement_id,
    }


class TimeEntryService:
    """Service for creating and correcting time entries.

    Operations:
    - create_entry: Record a draft, or add an entry straight into an open statement
    - update_entry: Audited correction
    - remove_entry: Delete a draft, or unlink a submitted entry and mark it invalid
    - drafts / get_entry: Read paths
    """

    def __init__(self, session: AsyncSession, clock: Clock):
        self.session = session
        self.clock = clock
        self.ledger = StatusLedger(session, clock)
        self.audit = AuditService(session, clock)

    async def _load(self, time_entry_id: UUID) -> TimeEntry:
        entry = await self.session.get(TimeEntry, time_entry_id)
        if entry is None:
            raise NotFoundError("TimeEntry", time_entry_id)
        return entry

    async def _load_statement(self, statement_id: UUID) -> Statement:
        statement = await self.session.get(Statement, statement_id)
        if statement is None:
            raise NotFoundError("Statement", statement_id)
        return statement

    async def _check_fits_statement(
        self,
        statement: Statement,
        work_date: date,
        department_id: UUID,
    ) -> None:
        if department_id != statement.department_id:
            raise ValidationError(
                "Entry department differs from the statement department",
                department_id=str(department_id),
            )
        quarter = await self.session.get(Quarter, statement.quarter_id)
        if quarter is None or not quarter.covers(work_date):
            raise ValidationError(
                f"Work date {work_date} lies outside the statement quarter",
                work_date=work_date.isoformat(),
            )

    async def _open_statement_status(self, statement_id: UUID) -> int | None:
        status = await self.ledger.statement_status(statement_id)
        if not StatementStateMachine.entries_mutable(status):
            raise StateError(
                f"Entries of a statement in status {status} cannot be changed",
                current_status=status,
            )
        return status

    # ===== Writes =====

    async def create_entry(
        self,
        actor: Actor,
        data: EntryData,
        owner_id: UUID | None = None,
        statement_id: UUID | None = None,
    ) -> TimeEntry:
        """Record a new time entry.

        Without ``statement_id`` the entry starts as a draft of ``owner_id``
        (default: the actor). With ``statement_id`` an approver adds the entry
        to an open statement on the owner's behalf; it starts as submitted.
        """
        fields = data.as_fields()
        owner_id = owner_id or actor.actor_id
        initial = EntryStatus.DRAFT

        if statement_id is not None:
            statement = await self._load_statement(statement_id)
            if not (actor.manages(statement.department_id) or actor.is_office_or_admin):
                raise AuthorizationError("Only approvers may add entries to a statement")
            if owner_id not in (actor.actor_id, statement.owner_id):
                raise ValidationError("Entry owner differs from the statement owner")
            await self._open_statement_status(statement_id)
            await self._check_fits_statement(statement, data.work_date, data.department_id)
            owner_id = statement.owner_id
            initial = EntryStatus.SUBMITTED
        elif not actor.can_address(owner_id, data.department_id):
            raise AuthorizationError("Not allowed to record hours for this worker")

        async with atomic(self.session):
            entry = TimeEntry(
                **fields,
                owner_id=owner_id,
                statement_id=statement_id,
                created_by=actor.actor_id,
                created_at=self.clock.now(),
            )
            self.session.add(entry)
            await self.session.flush()

            await self.ledger.append_entry_status(
                entry.time_entry_id,
                initial,
                actor.actor_id,
                "Entry created" if statement_id is None else "Entry added to statement",
            )

        logger.info(
            "Created entry %s for %s (status %d)",
            entry.time_entry_id,
            owner_id,
            int(initial),
        )
        return entry

    async def update_entry(
        self,
        actor: Actor,
        time_entry_id: UUID,
        data: EntryData,
        comment: str | None = None,
    ) -> tuple[TimeEntry, list[FieldChange]]:
        """Apply a correction and audit every field that actually changed.

        Duration is recomputed from start and end; a supplied value is never
        trusted.
        """
        entry = await self._load(time_entry_id)

        if entry.statement_id is None:
            if not (
                actor.can_address(entry.owner_id, entry.department_id)
                and actor.can_address(entry.owner_id, data.department_id)
            ):
                raise AuthorizationError("Not allowed to change this entry")
            status = await self.ledger.entry_status(time_entry_id)
            if status == EntryStatus.INVALID:
                raise StateError("Invalid entries cannot be changed", current_status=status)
        else:
            if not (actor.manages(entry.department_id) or actor.is_office_or_admin):
                raise AuthorizationError("Submitted entries are corrected by approvers only")
            await self._open_statement_status(entry.statement_id)
            statement = await self._load_statement(entry.statement_id)
            await self._check_fits_statement(statement, data.work_date, data.department_id)

        staged = data.as_fields()
        changes = diff_fields(_entry_fields(entry), staged)
        if not changes:
            return entry, []

        async with atomic(self.session):
            for name, value in staged.items():
                setattr(entry, name, value)
            await self.session.flush()
            await self.audit.record(time_entry_id, changes, actor.actor_id, comment)

        return entry, changes

    async def remove_entry(
        self,
        actor: Actor,
        time_entry_id: UUID,
        comment: str | None = None,
    ) -> bool:
        """Remove an entry.

        A draft that never reached a statement is deleted outright. Anything
        else is unlinked from its statement and marked invalid, keeping its
        history. Returns True when the entry was physically deleted.
        """
        entry = await self._load(time_entry_id)
        status = await self.ledger.entry_status(time_entry_id)

        if entry.statement_id is None and status == EntryStatus.DRAFT:
            if not actor.can_address(entry.owner_id, entry.department_id):
                raise AuthorizationError("Not allowed to delete this entry")
            async with atomic(self.session):
                await self.session.execute(
                    delete(AuditLogEntry).where(AuditLogEntry.time_entry_id == time_entry_id)
                )
                await self.session.execute(
                    delete(EntryStatusLog).where(EntryStatusLog.time_entry_id == time_entry_id)
                )
                await self.session.execute(
                    delete(TimeEntry).where(TimeEntry.time_entry_id == time_entry_id)
                )
            logger.info("Deleted draft entry %s", time_entry_id)
            return True

        if status == EntryStatus.INVALID:
            raise StateError("Entry is already invalid", current_status=status)
        if not (actor.manages(entry.department_id) or actor.is_office_or_admin):
            raise AuthorizationError("Submitted entries are removed by approvers only")

        if entry.statement_id is not None:
            await self._open_statement_status(entry.statement_id)

        async with atomic(self.session):
            if entry.statement_id is not None:
                await self.audit.record(
                    time_entry_id,
                    [FieldChange("statement_id", str(entry.statement_id), None)],
                    actor.actor_id,
                    comment or "Removed from statement",
                )
                entry.statement_id = None
                await self.session.flush()
            await self.ledger.append_entry_status(
                time_entry_id,
                EntryStatus.INVALID,
                actor.actor_id,
                comment or "Entry removed",
                from_status=status,
            )

        logger.info("Invalidated entry %s", time_entry_id)
        return False

    # ===== Reads =====

    async def drafts(self, actor: Actor) -> list[TimeEntry]:
        """Unlinked draft entries owned by the actor, newest first."""
        result = await self.session.execute(
            select(TimeEntry)
            .where(TimeEntry.owner_id == actor.actor_id, TimeEntry.statement_id.is_(None))
            .order_by(TimeEntry.work_date.desc(), TimeEntry.start_time.desc())
        )
        entries = list(result.scalars().all())
        statuses = await self.ledger.entry_statuses([e.time_entry_id for e in entries])
        return [e for e in entries if statuses.get(e.time_entry_id) == EntryStatus.DRAFT]

    async def get_entry(self, actor: Actor, time_entry_id: UUID) -> EntryDetail:
        """Entry with its current status and merged status/audit history."""
        entry = await self._load(time_entry_id)
        if not actor.can_address(entry.owner_id, entry.department_id):
            raise AuthorizationError("Not allowed to view this entry")

        status_rows = await self.ledger.entry_history(time_entry_id)
        audit_rows = await self.audit.history(time_entry_id)

        history = [
            HistoryItem(
                kind="status",
                recorded_at=row.recorded_at,
                actor_id=row.actor_id,
                comment=row.comment,
                status_code=row.status_code,
                sequence=row.sequence,
            )
            for row in status_rows
        ] + [
            HistoryItem(
                kind="audit",
                recorded_at=row.recorded_at,
                actor_id=row.actor_id,
                comment=row.comment,
                field_name=row.field_name,
                old_value=row.old_value,
                new_value=row.new_value,
                sequence=row.sequence,
            )
            for row in audit_rows
        ]
        history.sort(key=ordering_key)

        statement_status = None
        if entry.statement_id is not None:
            statement_status = await self.ledger.statement_status(entry.statement_id)

        status = status_rows[-1].status_code if status_rows else None
        return EntryDetail(
            entry=entry,
            status=status,
            statement_status=statement_status,
            history=history,
        )
