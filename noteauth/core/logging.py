"""Structured logging setup shared by every module."""

import logging
import sys

import structlog


def configure_logging(log_level: str = "info", json_logs: bool = True) -> None:
    """Configure structlog and the stdlib root logger it writes through."""
    renderer: structlog.types.Processor
    if json_logs:
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
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def bind_user_context(user_id: str, organization_id: str | None = None) -> None:
    """Attach the authenticated subject to every log line of this request."""
    structlog.contextvars.bind_contextvars(user_id=user_id)
    if organization_id:
        structlog.contextvars.bind_contextvars(organization_id=organization_id)


def clear_user_context() -> None:
    structlog.contextvars.unbind_contextvars("user_id", "organization_id")


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
