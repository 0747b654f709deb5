"""Append-only status ledger for statements and time entries.

Status is never stored on the entity itself. Each transition appends a row;
the current status is the row with the latest ``recorded_at``, with the
insertion ``sequence`` breaking ties.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hourly_billing.clock import Clock
from hourly_billing.errors import InvalidTransitionError
from hourly_billing.models import EntryStatusLog, Statement, StatementStatusLog, TimeEntry
from hourly_billing.services.state_machine import (
    EntryStateMachine,
    EntryStatus,
    StatementStateMachine,
    StatementStatus,
)

logger = logging.getLogger(__name__)


class LedgerEvent(Protocol):
    status_code: int
    recorded_at: datetime
    sequence: int | None


def _as_utc_naive(moment: datetime) -> datetime:
    # SQLite hands back naive values, PostgreSQL aware ones
    if moment.tzinfo is not None:
        return moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def ordering_key(event: LedgerEvent) -> tuple[datetime, int]:
    return (_as_utc_naive(event.recorded_at), event.sequence or 0)


def current_status(events: Iterable[LedgerEvent]) -> int | None:
    """Status of the latest event, or None for an empty ledger."""
    latest = max(events, key=ordering_key, default=None)
    return latest.status_code if latest is not None else None


def ordered(events: Iterable[LedgerEvent]) -> list[LedgerEvent]:
    """Events oldest first."""
    return sorted(events, key=ordering_key)


def _latest_status_query(log_model: type, id_column):
    """Select (entity_id, status_code) of the current row per entity."""
    ranked = select(
        id_column.label("entity_id"),
        log_model.status_code.label("status_code"),
        func.row_number()
        .over(
            partition_by=id_column,
            order_by=(log_model.recorded_at.desc(), log_model.sequence.desc()),
        )
        .label("position"),
    ).subquery()
    return select(ranked.c.entity_id, ranked.c.status_code).where(ranked.c.position == 1)


class StatusLedger:
    """Reads and appends status ledger rows."""

    def __init__(self, session: AsyncSession, clock: Clock):
        self.session = session
        self.clock = clock

    # ===== Appends =====

    @staticmethod
    def _check_unchanged(current: int | None, expected: int | None, target: int) -> None:
        if current != expected:
            logger.warning("Stale transition to %s: expected %s, found %s", int(target), expected, current)
            raise InvalidTransitionError(current, target, "Status changed concurrently")

    async def append_statement_status(
        self,
        statement_id: UUID,
        status: StatementStatus,
        actor_id: UUID,
        comment: str | None = None,
        *,
        from_status: int | None = None,
        validate: bool = True,
    ) -> StatementStatusLog:
        """Append a statement status row, validating the transition first.

        With ``validate`` the statement row is locked and its current status
        re-read, so a ``from_status`` observed before a concurrent
        transition raises InvalidTransitionError instead of forking the
        ledger.
        """
        if validate:
            StatementStateMachine.validate_transition(from_status, status)
            await self.session.execute(
                select(Statement.statement_id)
                .where(Statement.statement_id == statement_id)
                .with_for_update()
            )
            self._check_unchanged(await self.statement_status(statement_id), from_status, status)

        row = StatementStatusLog(
            statement_id=statement_id,
            status_code=int(status),
            actor_id=actor_id,
            recorded_at=self.clock.now(),
            comment=comment,
        )
        self.session.add(row)
        await self.session.flush()

        logger.debug("Statement %s -> %s by %s", statement_id, int(status), actor_id)
        return row

    async def append_entry_status(
        self,
        time_entry_id: UUID,
        status: EntryStatus,
        actor_id: UUID,
        comment: str | None = None,
        *,
        from_status: int | None = None,
        validate: bool = True,
    ) -> EntryStatusLog:
        """Append a time entry status row, validating the transition first."""
        if validate:
            EntryStateMachine.validate_transition(from_status, status)
            await self.session.execute(
                select(TimeEntry.time_entry_id)
                .where(TimeEntry.time_entry_id == time_entry_id)
                .with_for_update()
            )
            self._check_unchanged(await self.entry_status(time_entry_id), from_status, status)

        row = EntryStatusLog(
            time_entry_id=time_entry_id,
            status_code=int(status),
            actor_id=actor_id,
            recorded_at=self.clock.now(),
            comment=comment,
        )
        self.session.add(row)
        await self.session.flush()

        logger.debug("Entry %s -> %s by %s", time_entry_id, int(status), actor_id)
        return row

    # ===== Reads =====

    async def statement_history(self, statement_id: UUID) -> list[StatementStatusLog]:
        result = await self.session.execute(
            select(StatementStatusLog).where(StatementStatusLog.statement_id == statement_id)
        )
        return ordered(result.scalars().all())

    async def entry_history(self, time_entry_id: UUID) -> list[EntryStatusLog]:
        result = await self.session.execute(
            select(EntryStatusLog).where(EntryStatusLog.time_entry_id == time_entry_id)
        )
        return ordered(result.scalars().all())

    async def statement_status(self, statement_id: UUID) -> int | None:
        return current_status(await self.statement_history(statement_id))

    async def entry_status(self, time_entry_id: UUID) -> int | None:
        return current_status(await self.entry_history(time_entry_id))

    async def statement_statuses(self, statement_ids: Sequence[UUID]) -> dict[UUID, int | None]:
        """Current status of many statements in one query."""
        if not statement_ids:
            return {}
        query = _latest_status_query(StatementStatusLog, StatementStatusLog.statement_id)
        result = await self.session.execute(
            query.where(query.selected_columns.entity_id.in_(statement_ids))
        )
        statuses: dict[UUID, int | None] = {sid: None for sid in statement_ids}
        statuses.update({row.entity_id: row.status_code for row in result})
        return statuses

    async def entry_statuses(self, time_entry_ids: Sequence[UUID]) -> dict[UUID, int | None]:
        """Current status of many time entries in one query."""
        if not time_entry_ids:
            return {}
        query = _latest_status_query(EntryStatusLog, EntryStatusLog.time_entry_id)
        result = await self.session.execute(
            query.where(query.selected_columns.entity_id.in_(time_entry_ids))
        )
        statuses: dict[UUID, int | None] = {eid: None for eid in time_entry_ids}
        statuses.update({row.entity_id: row.status_code for row in result})
        return statuses

    async def statements_in_status(self, *statuses: StatementStatus) -> list[UUID]:
        """Ids of statements whose current status is one of ``statuses``."""
        query = _latest_status_query(StatementStatusLog, StatementStatusLog.statement_id)
        result = await self.session.execute(
            query.where(query.selected_columns.status_code.in_([int(s) for s in statuses]))
        )
        return [row.entity_id for row in result]
