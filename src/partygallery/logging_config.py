"""
Structured logging setup for partygallery.

structlog is configured once per process on top of the standard library
``logging`` module. Development runs get a readable console renderer, every
other environment emits one JSON object per line.
"""

import logging
import os
import sys
from typing import Any

import structlog

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_configured = False


def get_log_level() -> int:
    """
    Resolve the log level from ``LOG_LEVEL``.

    Returns:
        int: Level constant from the logging module, INFO when unset or unknown
    """
    return _LEVELS.get(os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)


def is_development_environment() -> bool:
    """Check whether ``ENVIRONMENT`` names a development setup."""
    return os.getenv("ENVIRONMENT", "development").lower() in ["development", "dev", "local"]


def configure_structured_logging(force: bool = False) -> None:
    """
    Configure structlog and the stdlib root logger.

    Streamlit re-executes the main script on every interaction, so repeated
    calls are ignored unless ``force`` is set.

    Args:
        force: Reconfigure even if logging was already set up
    """
    global _configured
    if _configured and not force:
        return

    log_level = get_log_level()
    is_dev = is_development_environment()

    logging.basicConfig(level=log_level, format="%(message)s", stream=sys.stderr)

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if is_dev:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.getLogger().setLevel(log_level)
    _configured = True

    structlog.get_logger("partygallery.logging").info(
        "logging_configured",
        log_level=logging.getLevelName(log_level),
        environment="development" if is_dev else "production",
    )


def get_logger(name: str | None = None) -> Any:
    """
    Get a structured logger.

    Args:
        name: Logger name, usually ``__name__``

    Returns:
        structlog.BoundLogger: Logger bound to ``name``
    """
    return structlog.get_logger(name or "partygallery")


def log_performance(operation: str, duration: float, **context: Any) -> None:
    """
    Log how long an operation took.

    Args:
        operation: Name of the operation
        duration: Duration in seconds
        **context: Extra fields for the event
    """
    get_logger("partygallery.performance").info(
        "performance_metric", operation=operation, duration_seconds=round(duration, 4), **context
    )


def log_user_action(user_id: str, action: str, **context: Any) -> None:
    """Record a user-initiated state change for the audit trail."""
    get_logger("partygallery.user_actions").info("user_action", user_id=user_id, action=action, **context)


def log_error(error: Exception, context: dict[str, Any] | None = None) -> None:
    """
    Log an exception together with structured context.

    Args:
        error: The exception
        context: Extra fields for the event
    """
    fields = {"error_type": type(error).__name__, "error_message": str(error)}
    if context:
        fields.update(context)
    get_logger("partygallery.errors").error("error_occurred", **fields)


def log_degraded(event: str, **context: Any) -> None:
    """
    Log a silently degraded step (dimension probe, compression, export fetch).

    These never reach the user; the pipeline carries on with a fallback.
    """
    get_logger("partygallery.degraded").warning(event, **context)


def log_security_event(event_type: str, user_id: str | None = None, **context: Any) -> None:
    """Log authentication and authorization events."""
    get_logger("partygallery.security").warning("security_event", event_type=event_type, user_id=user_id, **context)
