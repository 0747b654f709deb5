"""API routes."""

from hourly_billing.api.routes.entries import router as entries_router
from hourly_billing.api.routes.health import router as health_router
from hourly_billing.api.routes.limits import router as limits_router
from hourly_billing.api.routes.rates import router as rates_router
from hourly_billing.api.routes.statements import router as statements_router
from hourly_billing.api.routes.surcharges import router as surcharges_router

__all__ = [
    "entries_router",
    "health_router",
    "limits_router",
    "rates_router",
    "statements_router",
    "surcharges_router",
]
