"""Observability setup: Pydantic Logfire plus stdlib logging.

Modules log through ``logging.getLogger(__name__)`` with structured ``extra``
fields; once ``configure_logfire()`` has run, Logfire captures those records
and the spans opened with ``span()``. Without a token nothing leaves the
process.

    logger = logging.getLogger(__name__)
    log_with_task_context(logger, "info", "Task pushed", task_id=12, remote_id="-Nx...")
"""

import logging

import logfire
from fastapi import FastAPI

from src.core.config import settings


SERVICE_NAME = "deadline-tracker"
SERVICE_VERSION = "0.1.0"

logger = logging.getLogger(__name__)


def configure_logfire(token: str | None = None) -> None:
    """Configure Logfire for this service, falling back to the configured token."""
    logfire.configure(
        token=token or settings.logfire_token,
        service_name=SERVICE_NAME,
        service_version=SERVICE_VERSION,
        send_to_logfire="if-token-present",
    )
    logger.info("Logfire configured", extra={"service": SERVICE_NAME})


def instrument_fastapi(app: FastAPI) -> None:
    """Trace every request handled by ``app``."""
    logfire.instrument_fastapi(app)
    logger.info("FastAPI instrumentation configured")


def span(name: str) -> logfire.LogfireSpan:
    """Open a Logfire span named ``<module>.<operation>``, e.g. ``sync_reconciler.push_task``."""
    return logfire.span(name)


def log_with_context(logger: logging.Logger, level: str, message: str, **context: object) -> None:
    """Log ``message`` at ``level`` (a lowercase method name) with ``context`` as structured fields."""
    getattr(logger, level.lower())(message, extra=context)


def log_with_task_context(
    logger: logging.Logger,
    level: str,
    message: str,
    task_id: int | None = None,
    **extra: object,
) -> None:
    """Log a message tagged with the local task id when one is known.

    Args:
        logger: Logger instance to use
        level: "debug", "info", "warning", "error" or "exception"
        message: Log message
        task_id: Local task id, omitted from the record when None
        **extra: Additional structured fields (remote_id, tier, locator, ...)
    """
    if task_id is not None:
        extra = {"task_id": task_id, **extra}
    log_with_context(logger, level, message, **extra)
