# booking/log.py

"""
Structured logging on top of the standard library.

Modules call ``get_logger(__name__)`` and log snake_case events with keyword
context, e.g. ``logger.info("appointment_created", appointment_id=7)``.
"""
import logging

import structlog


def setup_logging(level: str = "INFO", debug: bool = False) -> None:
    """Configure structlog and the stdlib root logger once at startup."""
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if debug:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=log_level, format="%(message)s")


def get_logger(name: str = __name__):
    return structlog.get_logger(name)


def bind_request(request_id: str, **context) -> None:
    """Attach a request id (and any extra context) to every log line of this request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **context)


def clear_request() -> None:
    structlog.contextvars.clear_contextvars()
