"""Structured logging setup for the gateway.

Uses structlog for consistent, machine-parseable log output. Values bound
under secret-looking keys are masked before rendering.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

SECRET_KEYS = frozenset({
    "authorization",
    "api_key",
    "apikey",
    "auth_token",
    "token",
    "secret",
    "password",
})

MASK = "***"


def mask_secrets(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask values of secret-looking keys, including inside nested dicts."""
    return _mask(event_dict)


def _mask(data: dict[str, Any]) -> dict[str, Any]:
    masked = {}
    for key, value in data.items():
        if isinstance(key, str) and key.lower() in SECRET_KEYS:
            masked[key] = MASK
        elif isinstance(value, dict):
            masked[key] = _mask(value)
        else:
            masked[key] = value
    return masked


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON; otherwise, use colored console output
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        mask_secrets,
    ]

    if json_output:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # uvicorn and httpx log through the standard library
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically module name)
        **initial_context: Initial context values to bind to logger
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


def bind_request_context(**context: Any) -> None:
    """Bind values to every log line emitted while handling the current request."""
    structlog.contextvars.bind_contextvars(**context)


def clear_request_context() -> None:
    """Clear all request-bound context values."""
    structlog.contextvars.clear_contextvars()
