"""structlog setup for the imgproxy gateway.

Log lines are JSON objects on stdout by default (``JSON_LOGS=false`` switches
to the coloured console renderer). Request-scoped values are bound with
structlog's contextvars support, so every line logged while a request is being
handled carries that request's ``request_id``.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from imgproxy_gateway.utils.ulid import generate_ulid


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog for the gateway process.

    Args:
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: JSON lines when True, human-readable console output otherwise.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "imgproxy_gateway") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_id() -> str:
    """Start a fresh logging context for one request and return its ID.

    Values bound by an earlier request on the same context are dropped first.
    """
    request_id = generate_ulid()
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    return request_id


# Defaults until run.py reconfigures from the environment
configure_logging()
