"""Field-level audit trail for time entry corrections."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hourly_billing.clock import Clock
from hourly_billing.models import AuditLogEntry

logger = logging.getLogger(__name__)

# Fields of a time entry tracked by the audit log, in reporting order
AUDITED_FIELDS = (
    "work_date",
    "start_time",
    "end_time",
    "duration",
    "department_id",
    "label",
    "statement_id",
)

DATE_FIELDS = frozenset({"work_date"})
TIME_FIELDS = frozenset({"start_time", "end_time"})
DURATION_FIELDS = frozenset({"duration"})

DURATION_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class FieldChange:
    """One field whose value differs after normalization."""

    field_name: str
    old_value: str | None
    new_value: str | None


def render(value: Any) -> str | None:
    """Text form of a value as stored in the audit log."""
    if value is None:
        return None
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)


def _as_day(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)[:10]


def _as_minute(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (time, datetime)):
        return value.strftime("%H:%M")
    return str(value)[:5]


def _as_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def values_equal(field_name: str, old: Any, new: Any) -> bool:
    """Compare two values of a field with its normalization rule.

    Dates compare as calendar days, times at minute granularity, durations
    within a tolerance of 0.01 hours, everything else as text with empty
    and missing treated alike.
    """
    if field_name in DATE_FIELDS:
        return _as_day(old) == _as_day(new)

    if field_name in TIME_FIELDS:
        return _as_minute(old) == _as_minute(new)

    if field_name in DURATION_FIELDS:
        old_dec, new_dec = _as_decimal(old), _as_decimal(new)
        if old_dec is None or new_dec is None:
            return old_dec is new_dec
        return abs(old_dec - new_dec) < DURATION_TOLERANCE

    return (render(old) or None) == (render(new) or None)


def diff_fields(
    old: Mapping[str, Any],
    new: Mapping[str, Any],
    fields: Iterable[str] = AUDITED_FIELDS,
) -> list[FieldChange]:
    """List the fields whose staged value differs from the persisted one.

    Only fields present in ``new`` are compared.
    """
    changes = []
    for name in fields:
        if name not in new:
            continue
        if not values_equal(name, old.get(name), new[name]):
            changes.append(FieldChange(name, render(old.get(name)), render(new[name])))
    return changes


class AuditService:
    """Writes and reads audit log rows."""

    def __init__(self, session: AsyncSession, clock: Clock):
        self.session = session
        self.clock = clock

    async def record(
        self,
        time_entry_id: UUID,
        changes: Iterable[FieldChange],
        actor_id: UUID,
        comment: str | None = None,
    ) -> list[AuditLogEntry]:
        """Persist one audit row per change."""
        rows = [
            AuditLogEntry(
                time_entry_id=time_entry_id,
                field_name=change.field_name,
                old_value=change.old_value,
                new_value=change.new_value,
                actor_id=actor_id,
                recorded_at=self.clock.now(),
                comment=comment,
            )
            for change in changes
        ]
        if rows:
            self.session.add_all(rows)
            await self.session.flush()
            logger.info(
                "Audited %d change(s) on entry %s: %s",
                len(rows),
                time_entry_id,
                ", ".join(r.field_name for r in rows),
            )
        return rows

    async def history(self, time_entry_id: UUID) -> list[AuditLogEntry]:
        result = await self.session.execute(
            select(AuditLogEntry)
            .where(AuditLogEntry.time_entry_id == time_entry_id)
            .order_by(AuditLogEntry.recorded_at, AuditLogEntry.sequence)
        )
        return list(result.scalars().all())
