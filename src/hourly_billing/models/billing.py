"""Quarters, statements, time entries and their ledgers."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hourly_billing.models.base import AppendOnlyMixin, Base, TimestampMixin


# ===== Quarters =====


class Quarter(Base):
    """Fixed fiscal quarter used to bucket statements."""

    __tablename__ = "quarter"

    quarter_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("start_date", name="quarter_start_unique"),
        CheckConstraint("end_date >= start_date", name="quarter_dates_check"),
    )

    @property
    def label(self) -> str:
        """Display name such as 'Q1 2024'."""
        return f"Q{(self.start_date.month - 1) // 3 + 1} {self.start_date.year}"

    def covers(self, on: date) -> bool:
        return self.start_date <= on <= self.end_date


# ===== Statements =====


class Statement(Base):
    """Department- and quarter-scoped batch of time entries submitted for payment."""

    __tablename__ = "statement"

    statement_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    quarter_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("quarter.quarter_id"),
        nullable=False,
    )
    department_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    owner_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("statement_department_idx", "department_id"),
        Index("statement_owner_idx", "owner_id"),
    )

    # Relationships
    quarter: Mapped[Quarter] = relationship()
    entries: Mapped[list[TimeEntry]] = relationship(
        back_populates="statement",
        order_by="TimeEntry.work_date",
    )
    status_logs: Mapped[list[StatementStatusLog]] = relationship(
        back_populates="statement",
        order_by="StatementStatusLog.sequence",
    )


class StatementStatusLog(AppendOnlyMixin, Base):
    """Append-only status ledger row of a statement."""

    __tablename__ = "statement_status_log"

    statement_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("statement.statement_id", ondelete="CASCADE"),
        nullable=False,
    )
    status_code: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("status_code BETWEEN 20 AND 24", name="statement_status_code_check"),
        Index("statement_status_log_statement_idx", "statement_id", "recorded_at"),
    )

    statement: Mapped[Statement] = relationship(back_populates="status_logs")

    @property
    def entity_id(self) -> UUID:
        return self.statement_id


# ===== Time entries =====


class TimeEntry(Base, TimestampMixin):
    """Worked-hours record of a worker in a department."""

    __tablename__ = "time_entry"

    time_entry_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration: Mapped[Decimal] = mapped_column(Numeric(8, 4), nullable=False)
    department_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    owner_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    statement_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("statement.statement_id"),
        nullable=True,
    )
    label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="time_entry_range_check"),
        CheckConstraint("duration >= 0", name="time_entry_duration_check"),
        Index("time_entry_owner_idx", "owner_id"),
        Index("time_entry_statement_idx", "statement_id"),
    )

    # Relationships
    statement: Mapped[Statement | None] = relationship(back_populates="entries")
    status_logs: Mapped[list[EntryStatusLog]] = relationship(
        back_populates="time_entry",
        order_by="EntryStatusLog.sequence",
        passive_deletes=True,
    )
    audit_logs: Mapped[list[AuditLogEntry]] = relationship(
        back_populates="time_entry",
        order_by="AuditLogEntry.sequence",
        passive_deletes=True,
    )


class EntryStatusLog(AppendOnlyMixin, Base):
    """Append-only status ledger row of a time entry."""

    __tablename__ = "time_entry_status_log"

    time_entry_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("time_entry.time_entry_id", ondelete="CASCADE"),
        nullable=False,
    )
    status_code: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("status_code BETWEEN 10 AND 12", name="time_entry_status_code_check"),
        Index("time_entry_status_log_entry_idx", "time_entry_id", "recorded_at"),
    )

    time_entry: Mapped[TimeEntry] = relationship(back_populates="status_logs")

    @property
    def entity_id(self) -> UUID:
        return self.time_entry_id


class AuditLogEntry(AppendOnlyMixin, Base):
    """Field-level correction of a time entry."""

    __tablename__ = "time_entry_audit_log"

    time_entry_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("time_entry.time_entry_id", ondelete="CASCADE"),
        nullable=False,
    )
    field_name: Mapped[str] = mapped_column(String(64), nullable=False)
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    actor_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("time_entry_audit_log_entry_idx", "time_entry_id"),)

    time_entry: Mapped[TimeEntry] = relationship(back_populates="audit_logs")
