"""Pydantic schemas for API request/response models."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from hourly_billing.services.statement_reader import StatementView


# ============================================================================
# Errors
# ============================================================================


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    detail: str
    code: str
    current_status: int | None = None
    correlation_id: str | None = None
    details: dict[str, Any] | None = None


# ============================================================================
# Time entry schemas
# ============================================================================


class EntryFields(BaseModel):
    """Editable fields of a time entry. Duration is always derived."""

    work_date: date
    start_time: time
    end_time: time
    department_id: UUID
    label: str | None = Field(default=None, max_length=255)


class EntryCreate(EntryFields):
    """Schema for recording a time entry."""

    owner_id: UUID | None = None
    statement_id: UUID | None = None


class EntryUpdate(EntryFields):
    """Schema for correcting a time entry."""

    comment: str | None = None


class EntryResponse(BaseModel):
    """Schema for time entry response."""

    model_config = ConfigDict(from_attributes=True)

    time_entry_id: UUID
    work_date: date
    start_time: time
    end_time: time
    duration: Decimal
    department_id: UUID
    owner_id: UUID
    statement_id: UUID | None = None
    label: str | None = None
    created_by: UUID
    created_at: datetime


class FieldChangeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    field_name: str
    old_value: str | None = None
    new_value: str | None = None


class EntryUpdateResponse(BaseModel):
    entry: EntryResponse
    changes: list[FieldChangeResponse]


class HistoryItemResponse(BaseModel):
    """One status or audit event of an entry."""

    model_config = ConfigDict(from_attributes=True)

    kind: str
    recorded_at: datetime
    actor_id: UUID
    comment: str | None = None
    status_code: int | None = None
    field_name: str | None = None
    old_value: str | None = None
    new_value: str | None = None


class EntryDetailResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entry: EntryResponse
    status: int | None = None
    statement_status: int | None = None
    history: list[HistoryItemResponse]


class EntryRemovedResponse(BaseModel):
    time_entry_id: UUID
    deleted: bool


# ============================================================================
# Statement schemas
# ============================================================================


class AssembleRequest(BaseModel):
    """Schema for assembling statements from draft entries."""

    entry_ids: list[UUID] = Field(min_length=1)
    comment: str | None = None


class ApprovalRequest(BaseModel):
    comment: str | None = None


class RejectRequest(BaseModel):
    reason: str


class BulkFinalizeRequest(BaseModel):
    statement_ids: list[UUID] = Field(min_length=1)
    comment: str | None = None


class StatusLogResponse(BaseModel):
    """Schema for a statement ledger row."""

    model_config = ConfigDict(from_attributes=True)

    sequence: int
    status_code: int
    actor_id: UUID
    recorded_at: datetime
    comment: str | None = None


class LineItemResponse(BaseModel):
    """Schema for a priced entry."""

    model_config = ConfigDict(from_attributes=True)

    time_entry_id: UUID
    work_date: date
    start_time: time
    end_time: time
    duration: Decimal
    label: str | None = None
    rate: Decimal
    multiplier: Decimal
    is_holiday: bool
    amount: Decimal


class StatementResponse(BaseModel):
    """Schema for a priced statement with its ledger."""

    statement_id: UUID
    quarter_id: UUID
    quarter_label: str
    department_id: UUID
    owner_id: UUID
    created_at: datetime
    status: int | None = None
    hours: Decimal
    total: Decimal
    lines: list[LineItemResponse]
    history: list[StatusLogResponse]

    @classmethod
    def from_view(cls, view: StatementView) -> "StatementResponse":
        statement = view.statement
        return cls(
            statement_id=statement.statement_id,
            quarter_id=statement.quarter_id,
            quarter_label=view.quarter_label,
            department_id=statement.department_id,
            owner_id=statement.owner_id,
            created_at=statement.created_at,
            status=view.status,
            hours=view.pricing.hours,
            total=view.pricing.total,
            lines=[LineItemResponse.model_validate(line) for line in view.pricing.lines],
            history=[StatusLogResponse.model_validate(row) for row in view.status_history],
        )


class StatementListResponse(BaseModel):
    items: list[StatementResponse]
    total: int

    @classmethod
    def from_views(cls, views: list[StatementView]) -> "StatementListResponse":
        return cls(items=[StatementResponse.from_view(v) for v in views], total=len(views))


class TransitionResponse(BaseModel):
    """Schema for a statement status change."""

    model_config = ConfigDict(from_attributes=True)

    statement_id: UUID
    from_status: int | None = None
    to_status: int
    invalidated_entries: int = 0


class BulkFinalizeResponse(BaseModel):
    paid: list[UUID]
    skipped: dict[UUID, int | None]
    count: int


# ============================================================================
# Rate and surcharge schemas
# ============================================================================


class RateCreate(BaseModel):
    """Schema for starting a new hourly rate."""

    worker_id: UUID
    department_id: UUID
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    valid_from: date


class RateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rate_record_id: UUID
    worker_id: UUID
    department_id: UUID
    amount: Decimal
    valid_from: date
    valid_to: date | None = None


class SurchargeRuleCreate(BaseModel):
    """Schema for creating or replacing a surcharge rule."""

    multiplier: Decimal = Field(max_digits=5, decimal_places=2)
    valid_from: date
    valid_to: date | None = None


class SurchargeRuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    surcharge_rule_id: int
    multiplier: Decimal
    valid_from: date
    valid_to: date | None = None


# ============================================================================
# Pay limit schemas
# ============================================================================


class PayLimitCreate(BaseModel):
    """Schema for creating or replacing a pay limit."""

    amount: Decimal = Field(max_digits=10, decimal_places=2)
    valid_from: date
    valid_to: date | None = None


class PayLimitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    pay_limit_id: int
    amount: Decimal
    valid_from: date
    valid_to: date | None = None


class LimitUsageResponse(BaseModel):
    """A worker's earnings this year against the limit in force today."""

    model_config = ConfigDict(from_attributes=True)

    worker_id: UUID
    department_ids: list[UUID]
    limit: Decimal
    used: Decimal
    remaining: Decimal
    exceeded: bool
