"""Structured logging configuration for the watcher console.

Logs are emitted through ``structlog`` either as JSON (for machines) or in a
pretty console format (for humans). Every line carries the service name, and
request handlers add the browsing-session id, so lines from one session can
be followed across the gateway, the adapter and the cache.

Prompts and model outputs can be arbitrarily long and are user content, so
they are abbreviated before rendering.

Typical usage
- Call ``configure_logging(service_name, log_level, log_format)`` at startup
- Acquire loggers via ``structlog.get_logger(name)`` or ``get_logger``
- Call ``bind_session_context(session_id)`` at the start of a request
"""

import logging
import sys
from typing import Any, MutableMapping

import structlog
from structlog.stdlib import LoggerFactory, add_logger_name

TEXT_FIELDS = ("prompt", "output", "response")
MAX_TEXT_LENGTH = 80


def abbreviate_text_fields(
    logger: Any,
    method_name: str,
    event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor: shorten prompt/output values to ``MAX_TEXT_LENGTH``."""
    for field in TEXT_FIELDS:
        value = event_dict.get(field)
        if isinstance(value, str) and len(value) > MAX_TEXT_LENGTH:
            event_dict[field] = f"{value[:MAX_TEXT_LENGTH]}... ({len(value)} chars)"
    return event_dict


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
    **kwargs: Any
) -> None:
    """Configure structured logging for a service.

    Parameters
    - service_name: Logical service identifier bound to each log line
    - log_level: ``DEBUG``, ``INFO``, ``WARNING``, ``ERROR`` (case-insensitive)
    - log_format: ``json`` for production; ``console`` for local dev
    - kwargs: Extra context bound to every log line (e.g. ``env="local"``)
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_logger_name,
        abbreviate_text_fields,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name, **kwargs)


def bind_session_context(session_id: str) -> None:
    """Tag subsequent log lines of the current request with its session."""
    structlog.contextvars.bind_contextvars(session_id=session_id)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_performance(operation: str, duration_ms: float, **kwargs: Any) -> None:
    """Log how long a unit of work took.

    Parameters
    - operation: A stable identifier for the measured unit of work
    - duration_ms: Elapsed time in milliseconds
    - kwargs: Additional dimensions (e.g., outcome, status)
    """
    logger = get_logger("performance")
    logger.info(
        f"Operation {operation} completed",
        operation=operation,
        duration_ms=round(duration_ms, 2),
        **kwargs
    )
