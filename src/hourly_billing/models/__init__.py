"""ORM models."""

from hourly_billing.models.base import AppendOnlyMixin, Base, TimestampMixin
from hourly_billing.models.billing import (
    AuditLogEntry,
    EntryStatusLog,
    Quarter,
    Statement,
    StatementStatusLog,
    TimeEntry,
)
from hourly_billing.models.rates import Holiday, PayLimit, RateRecord, SurchargeRule

__all__ = [
    "AppendOnlyMixin",
    "AuditLogEntry",
    "Base",
    "EntryStatusLog",
    "Holiday",
    "PayLimit",
    "Quarter",
    "RateRecord",
    "Statement",
    "StatementStatusLog",
    "SurchargeRule",
    "TimeEntry",
    "TimestampMixin",
]
