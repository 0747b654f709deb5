"""FastAPI application factory."""

import logging
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hourly_billing.api.routes import (
    entries_router,
    health_router,
    limits_router,
    rates_router,
    statements_router,
    surcharges_router,
)
from hourly_billing.config import get_settings
from hourly_billing.database import dispose_db, init_db
from hourly_billing.errors import (
    AuthorizationError,
    BillingError,
    InfrastructureError,
    NotFoundError,
    StateError,
    ValidationError,
)
from hourly_billing.logging_config import CorrelationContext, configure_logging

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

STATUS_BY_ERROR: list[tuple[type[BillingError], int]] = [
    (ValidationError, 422),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (StateError, status.HTTP_409_CONFLICT),
    (InfrastructureError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for(exc: BillingError) -> int:
    for error_type, code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    init_db()
    yield
    # Shutdown
    await dispose_db()


def _server_error(correlation_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
            "correlation_id": correlation_id,
        },
        headers={CORRELATION_HEADER: correlation_id},
    )


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or CorrelationContext.get() or uuid.uuid4().hex


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Hourly Billing API",
        description="Quarterly billing statements with a three-party approval chain",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.debug,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        request.state.correlation_id = correlation_id
        CorrelationContext.set(correlation_id)
        try:
            response = await call_next(request)
        finally:
            CorrelationContext.clear()
        response.headers[CORRELATION_HEADER] = correlation_id
        return response

    # Exception handlers
    @app.exception_handler(BillingError)
    async def billing_exception_handler(request: Request, exc: BillingError) -> JSONResponse:
        """Map domain errors to status codes."""
        correlation_id = _correlation_id(request)
        code = status_for(exc)

        if code >= 500:
            logger.error("Request failed: %s", exc.message, exc_info=exc)
            return _server_error(correlation_id)

        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
        content = {"detail": exc.message, "code": exc.code}
        if isinstance(exc, StateError):
            content["current_status"] = exc.current_status
        if exc.details:
            content["details"] = {k: v for k, v in exc.details.items() if k != "current_status"}
        return JSONResponse(status_code=code, content=content)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        correlation_id = _correlation_id(request)
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return _server_error(correlation_id)

    # Include routers
    app.include_router(health_router)
    app.include_router(statements_router, prefix="/api/v1")
    app.include_router(entries_router, prefix="/api/v1")
    app.include_router(rates_router, prefix="/api/v1")
    app.include_router(surcharges_router, prefix="/api/v1")
    app.include_router(limits_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
