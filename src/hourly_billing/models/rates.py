"""Hourly rates, surcharge rules, pay limits and holiday storage."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, Index, Numeric, String, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from hourly_billing.models.base import Base, SequenceType, TimestampMixin


class EffectiveDatedMixin:
    """Validity window with an inclusive, optionally open end."""

    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    def is_active_on(self, as_of_date: date) -> bool:
        """Check if the record is effective on a given date."""
        if self.valid_from > as_of_date:
            return False
        if self.valid_to is not None and self.valid_to < as_of_date:
            return False
        return True

    @property
    def is_open_ended(self) -> bool:
        return self.valid_to is None

    def overlaps(self, valid_from: date, valid_to: date | None) -> bool:
        """Check if this window intersects another inclusive window."""
        if self.valid_to is not None and self.valid_to < valid_from:
            return False
        if valid_to is not None and valid_to < self.valid_from:
            return False
        return True


class RateRecord(EffectiveDatedMixin, Base, TimestampMixin):
    """Hourly rate of a worker in a department."""

    __tablename__ = "rate_record"

    rate_record_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    worker_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    department_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="rate_record_amount_check"),
        CheckConstraint("valid_to IS NULL OR valid_to >= valid_from", name="rate_record_dates_check"),
        Index("rate_record_lookup_idx", "worker_id", "department_id", "valid_from"),
        Index(
            "rate_record_one_open_idx",
            "worker_id",
            "department_id",
            unique=True,
            postgresql_where=text("valid_to IS NULL"),
            sqlite_where=text("valid_to IS NULL"),
        ),
    )


class SurchargeRule(EffectiveDatedMixin, Base, TimestampMixin):
    """Holiday-pay multiplier valid over a date window."""

    __tablename__ = "surcharge_rule"

    surcharge_rule_id: Mapped[int] = mapped_column(SequenceType, primary_key=True, autoincrement=True)
    multiplier: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("multiplier >= 1.0", name="surcharge_rule_multiplier_check"),
        CheckConstraint("valid_to IS NULL OR valid_to >= valid_from", name="surcharge_rule_dates_check"),
    )


class PayLimit(EffectiveDatedMixin, Base, TimestampMixin):
    """Annual amount a worker may be paid, valid over a date window."""

    __tablename__ = "pay_limit"

    pay_limit_id: Mapped[int] = mapped_column(SequenceType, primary_key=True, autoincrement=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="pay_limit_amount_check"),
        CheckConstraint("valid_to IS NULL OR valid_to >= valid_from", name="pay_limit_dates_check"),
    )


class Holiday(Base):
    """Public holiday of a jurisdiction."""

    __tablename__ = "holiday"

    holiday_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False)
    jurisdiction: Mapped[str] = mapped_column(String(16), nullable=False)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)

    __table_args__ = (
        UniqueConstraint("holiday_date", "jurisdiction", name="holiday_date_jurisdiction_unique"),
    )
