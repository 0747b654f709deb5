"""Logging setup with request correlation ids."""

from __future__ import annotations

import logging
from contextvars import ContextVar

__all__ = [
    "CorrelationContext",
    "CorrelationIdFilter",
    "configure_logging",
]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(correlation_id)s] %(message)s"


class CorrelationContext:
    """Async-safe holder for the correlation id of the current request."""

    _correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

    @classmethod
    def set(cls, correlation_id: str) -> None:
        cls._correlation_id.set(correlation_id)

    @classmethod
    def get(cls) -> str | None:
        return cls._correlation_id.get()

    @classmethod
    def clear(cls) -> None:
        cls._correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Inject the current correlation id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = CorrelationContext.get() or "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    """Install a stream handler on the package logger.

    Safe to call more than once; the handler is only added the first time.
    """
    logger = logging.getLogger("hourly_billing")
    logger.setLevel(level)

    if any(getattr(h, "_hourly_billing", False) for h in logger.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(CorrelationIdFilter())
    handler._hourly_billing = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
