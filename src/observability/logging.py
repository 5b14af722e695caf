"""
Structured logging for the dashboard service.

JSON lines in production, colored console output otherwise. Logs go to
stderr so ``sensesafe-dashboard snapshot`` keeps stdout for its JSON
document. Entries carry the service name, the request id bound by the
API middleware and, with tracing on, the active trace and span ids.
"""

import logging
import sys

import structlog
from structlog.types import EventDict, Processor

from src.config.settings import get_settings
from src.observability.tracing import add_trace_context

# Per-request chatter from the backend client and the API server
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def _service_name(service: str) -> Processor:
    def add_service(logger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    return add_service


def setup_logging() -> None:
    """
    Configure structlog and the stdlib root logger.

    Usage:
        setup_logging()
        logger = structlog.get_logger(__name__)
        logger.info("Snapshot applied", alerts=12, unread=3)
    """
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _service_name(settings.otel_service_name),
    ]
    if settings.tracing_enabled:
        processors.append(add_trace_context)

    if settings.is_production:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.log_level),
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs) -> None:
    """Bind fields (e.g. request_id) to every log entry in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
