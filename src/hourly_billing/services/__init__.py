"""Business services."""

from hourly_billing.services.approval_service import (
    ApprovalWorkflow,
    BulkFinalizeResult,
    TransitionResult,
)
from hourly_billing.services.audit_service import AuditService, FieldChange, diff_fields
from hourly_billing.services.limit_service import LimitService, LimitUsage
from hourly_billing.services.quarters import QuarterResolver, quarter_bounds, seed_quarters
from hourly_billing.services.rate_service import RateService
from hourly_billing.services.state_machine import (
    EntryStateMachine,
    EntryStatus,
    StatementStateMachine,
    StatementStatus,
)
from hourly_billing.services.statement_assembler import StatementAssembler
from hourly_billing.services.statement_reader import StatementReader, StatementView
from hourly_billing.services.status_ledger import StatusLedger, current_status
from hourly_billing.services.surcharge_service import SurchargeService
from hourly_billing.services.time_entry_service import (
    EntryData,
    EntryDetail,
    TimeEntryService,
    compute_duration,
)

__all__ = [
    "ApprovalWorkflow",
    "AuditService",
    "BulkFinalizeResult",
    "EntryData",
    "EntryDetail",
    "EntryStateMachine",
    "EntryStatus",
    "FieldChange",
    "LimitService",
    "LimitUsage",
    "QuarterResolver",
    "RateService",
    "StatementAssembler",
    "StatementReader",
    "StatementStateMachine",
    "StatementStatus",
    "StatementView",
    "StatusLedger",
    "SurchargeService",
    "TimeEntryService",
    "TransitionResult",
    "compute_duration",
    "current_status",
    "diff_fields",
    "quarter_bounds",
    "seed_quarters",
]
