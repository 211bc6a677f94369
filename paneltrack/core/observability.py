"""
Observability Infrastructure

Structured logging for the tracking core. Every module obtains its logger via
``get_logger(__name__)``; a correlation id set at the start of an operation is
carried on every line emitted while that operation runs.
"""

import contextvars
import logging
import sys
import uuid

import structlog

from .config import settings

# Context variables for correlation tracking
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)
operator_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "operator_id", default=""
)


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Configure structlog and the stdlib root logger."""
    log_level = (level or settings.LOG_LEVEL).upper()
    use_json = settings.json_logs if json_logs is None else json_logs

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level, logging.INFO),
        force=True,
    )

    renderer: structlog.types.Processor
    if use_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set correlation ID for operation tracking."""
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())

    correlation_id_var.set(correlation_id)
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    return correlation_id


def set_operator_id(operator_id: str) -> None:
    """Set the operator performing the current operation."""
    operator_id_var.set(operator_id)
    structlog.contextvars.bind_contextvars(operator_id=operator_id)


def get_correlation_id() -> str:
    """Get current correlation ID."""
    return correlation_id_var.get("")


def clear_log_context() -> None:
    """Drop correlation and operator ids bound for the current context."""
    correlation_id_var.set("")
    operator_id_var.set("")
    structlog.contextvars.clear_contextvars()
