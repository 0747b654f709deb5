"""Type definitions for the pricing pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

CENT = Decimal("0.01")


@dataclass(frozen=True)
class LineItem:
    """Priced time entry. Never persisted, rebuilt on every read."""

    time_entry_id: UUID
    work_date: date
    start_time: time
    end_time: time
    duration: Decimal
    label: str | None
    rate: Decimal
    multiplier: Decimal
    is_holiday: bool
    amount: Decimal

    @property
    def surcharge_factor(self) -> Decimal:
        """Share added on top of the base rate (0.35 for a 1.35 multiplier)."""
        return self.multiplier - Decimal("1")


@dataclass
class StatementPricing:
    """Priced lines of one statement."""

    statement_id: UUID
    lines: list[LineItem] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        """Sum of the individually rounded line amounts."""
        from hourly_billing.calculators.amount import statement_total

        return statement_total(line.amount for line in self.lines)

    @property
    def hours(self) -> Decimal:
        hours = sum((line.duration for line in self.lines), Decimal("0"))
        return hours.quantize(CENT, rounding=ROUND_HALF_UP)
