"""Statement assembly: groups unlinked entries into department statements."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hourly_billing.actor import Actor
from hourly_billing.clock import Clock
from hourly_billing.database import atomic
from hourly_billing.errors import ValidationError
from hourly_billing.models import Statement, TimeEntry
from hourly_billing.services.quarters import QuarterResolver
from hourly_billing.services.state_machine import EntryStatus, StatementStatus
from hourly_billing.services.status_ledger import StatusLedger

logger = logging.getLogger(__name__)


class StatementAssembler:
    """Builds statements from a worker's draft entries.

    Preconditions are checked before anything is written:
    - every id names an existing, unlinked draft the actor may address
    - all entries belong to one worker
    - all dates fall within one pre-seeded quarter

    One statement is created per department. Each statement gets a Created
    ledger row and each entry is linked and marked Submitted, all in one
    transaction. A repeated call with the same ids fails the unlinked check;
    a concurrent one fails at the conditional link and writes nothing.
    """

    def __init__(self, session: AsyncSession, clock: Clock):
        self.session = session
        self.clock = clock
        self.ledger = StatusLedger(session, clock)
        self.quarters = QuarterResolver(session)

    async def _eligible_entries(self, actor: Actor, entry_ids: Sequence[UUID]) -> list[TimeEntry]:
        result = await self.session.execute(
            select(TimeEntry).where(
                TimeEntry.time_entry_id.in_(entry_ids),
                TimeEntry.statement_id.is_(None),
            )
        )
        entries = [
            e for e in result.scalars().all() if actor.can_address(e.owner_id, e.department_id)
        ]
        statuses = await self.ledger.entry_statuses([e.time_entry_id for e in entries])
        return [e for e in entries if statuses.get(e.time_entry_id) == EntryStatus.DRAFT]

    async def _link(self, entries: list[TimeEntry], statement_id: UUID) -> None:
        """Link entries that are still unlinked; fail if any was taken meanwhile."""
        ids = [e.time_entry_id for e in entries]
        result = await self.session.execute(
            update(TimeEntry)
            .where(TimeEntry.time_entry_id.in_(ids), TimeEntry.statement_id.is_(None))
            .values(statement_id=statement_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(ids):
            logger.warning(
                "Assembly lost a race: linked %d of %d entries",
                result.rowcount,
                len(ids),
            )
            raise ValidationError(
                "Some entries were added to another statement meanwhile",
                requested=len(ids),
                available=result.rowcount,
            )

        refreshed = await self.session.execute(
            select(TimeEntry)
            .where(TimeEntry.time_entry_id.in_(ids))
            .execution_options(populate_existing=True)
        )
        refreshed.scalars().all()

    async def assemble(
        self,
        entry_ids: Sequence[UUID],
        actor: Actor,
        comment: str | None = None,
    ) -> list[Statement]:
        """Create one statement per department from the given entries.

        Raises:
            ValidationError: If any entry is missing, linked, not a draft or
                not addressable, if owners differ, or if the dates do not fit
                a single quarter
        """
        requested = list(dict.fromkeys(entry_ids))
        if not requested:
            raise ValidationError("No entries selected")

        entries = await self._eligible_entries(actor, requested)
        if len(entries) != len(requested):
            logger.warning(
                "Assembly rejected: %d of %d entries unavailable",
                len(requested) - len(entries),
                len(requested),
            )
            raise ValidationError(
                "Some entries do not exist, are already part of a statement, or are not yours",
                requested=len(requested),
                available=len(entries),
            )

        owners = {e.owner_id for e in entries}
        if len(owners) != 1:
            raise ValidationError("Entries of different workers cannot share a statement")
        owner_id = owners.pop()

        first_day = min(e.work_date for e in entries)
        last_day = max(e.work_date for e in entries)

        quarter = await self.quarters.quarter_for(first_day)
        if quarter is None:
            raise ValidationError(f"No quarter configured for {first_day}", work_date=first_day.isoformat())
        if last_day > quarter.end_date:
            raise ValidationError(
                f"Entries span more than one quarter ({quarter.label} ends {quarter.end_date})",
                quarter=quarter.label,
            )

        by_department: dict[UUID, list[TimeEntry]] = defaultdict(list)
        for entry in entries:
            by_department[entry.department_id].append(entry)

        statements = []
        async with atomic(self.session):
            for department_id in sorted(by_department, key=str):
                statement = Statement(
                    quarter_id=quarter.quarter_id,
                    department_id=department_id,
                    owner_id=owner_id,
                    created_at=self.clock.now(),
                )
                self.session.add(statement)
                await self.session.flush()

                await self.ledger.append_statement_status(
                    statement.statement_id,
                    StatementStatus.CREATED,
                    actor.actor_id,
                    comment or "Statement created",
                )

                group = sorted(by_department[department_id], key=lambda e: (e.work_date, e.start_time))
                await self._link(group, statement.statement_id)
                for entry in group:
                    await self.ledger.append_entry_status(
                        entry.time_entry_id,
                        EntryStatus.SUBMITTED,
                        actor.actor_id,
                        "Submitted with statement",
                        from_status=EntryStatus.DRAFT,
                    )

                statements.append(statement)

        logger.info(
            "Assembled %d statement(s) for %s in %s from %d entries",
            len(statements),
            owner_id,
            quarter.label,
            len(entries),
        )
        return statements
