"""Resolved capabilities of the caller of an operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from hourly_billing.errors import AuthorizationError


@dataclass(frozen=True)
class Actor:
    """Identity plus role scope, resolved once per request."""

    actor_id: UUID
    managed_departments: frozenset[UUID] = field(default_factory=frozenset)
    is_office: bool = False
    is_admin: bool = False

    def manages(self, department_id: UUID) -> bool:
        """Check if the actor is department head of the department (admins manage all)."""
        return self.is_admin or department_id in self.managed_departments

    @property
    def is_department_head(self) -> bool:
        return bool(self.managed_departments)

    @property
    def is_office_or_admin(self) -> bool:
        return self.is_office or self.is_admin

    def can_address(self, owner_id: UUID, department_id: UUID) -> bool:
        """Check if the actor may act on a record owned by someone in a department."""
        if owner_id == self.actor_id:
            return True
        return self.is_office_or_admin or self.manages(department_id)

    def require_office(self) -> None:
        if not self.is_office_or_admin:
            raise AuthorizationError("Business office role required")

    def require_admin(self) -> None:
        if not self.is_admin:
            raise AuthorizationError("Administrator role required")

    def require_manages(self, department_id: UUID) -> None:
        if not self.manages(department_id):
            raise AuthorizationError(
                f"Not department head of department {department_id}",
                department_id=str(department_id),
            )
