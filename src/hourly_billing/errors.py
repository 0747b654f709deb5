"""Typed exceptions for the billing service.

Every error carries a machine-readable ``code`` so the HTTP layer can map it
to a status without parsing messages:

    BillingError
    +-- ValidationError        bad or missing input, unknown ids, bad ranges
    +-- AuthorizationError     actor lacks role or department scope
    +-- NotFoundError          no such entry / statement / rule
    +-- StateError             operation illegal for the current status
    |   +-- InvalidTransitionError
    |   +-- LedgerImmutableError
    +-- InfrastructureError    transaction or storage failure
"""

from __future__ import annotations

from typing import Any


class BillingError(Exception):
    """Base class for all billing errors."""

    code: str = "BILLING_ERROR"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(BillingError):
    """Input failed validation."""

    code = "VALIDATION_ERROR"


class AuthorizationError(BillingError):
    """Actor is not allowed to perform the operation."""

    code = "FORBIDDEN"


class NotFoundError(BillingError):
    """Referenced entity does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found", entity=entity, entity_id=str(entity_id))


class StateError(BillingError):
    """Operation is not allowed in the entity's current status."""

    code = "INVALID_STATE"

    def __init__(self, message: str, current_status: int | None = None, **details: Any):
        self.current_status = current_status
        super().__init__(message, current_status=current_status, **details)


class InvalidTransitionError(StateError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: int | None, to_status: int, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, current_status=from_status, to_status=to_status)


class LedgerImmutableError(StateError):
    """Raised when a status or audit log row would be updated or deleted."""

    code = "LEDGER_IMMUTABLE"


class InfrastructureError(BillingError):
    """Storage or transaction failure."""

    code = "INTERNAL_ERROR"
