"""Base model class for SQLAlchemy ORM."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import BigInteger, DateTime, Integer, Uuid, event, func
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from hourly_billing.errors import LedgerImmutableError

# BIGSERIAL on PostgreSQL, INTEGER PRIMARY KEY (rowid alias) on SQLite
SequenceType = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    type_annotation_map = {
        UUID: Uuid(as_uuid=True),
        datetime: DateTime(timezone=True),
    }


class TimestampMixin:
    """Mixin for models with created_at timestamp."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class AppendOnlyMixin:
    """Marker for ledger tables whose rows may only ever be inserted."""

    sequence: Mapped[int] = mapped_column(SequenceType, primary_key=True, autoincrement=True)


@event.listens_for(Session, "before_flush")
def _reject_ledger_mutation(session: Session, flush_context: Any, instances: Any) -> None:
    """Refuse to flush updates or deletes of append-only rows."""
    for obj in session.deleted:
        if isinstance(obj, AppendOnlyMixin):
            raise LedgerImmutableError(f"{type(obj).__name__} rows cannot be deleted")
    for obj in session.dirty:
        if isinstance(obj, AppendOnlyMixin) and session.is_modified(obj):
            raise LedgerImmutableError(f"{type(obj).__name__} rows cannot be modified")
