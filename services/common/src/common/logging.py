"""Structured JSON logging for the export services.

Every record carries the service name and deployment environment. Per-request
or per-file identifiers are bound with :func:`log_context` and travel with
any log line emitted inside the block, including from concurrent tasks that
were started within it.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, ContextManager, Optional

import structlog
from structlog.typing import EventDict, Processor

DEFAULT_LOG_LEVEL = "INFO"

_configured = False


def add_service_fields(service: str, environment: str) -> Processor:
    """Processor stamping ``service`` and ``environment`` onto each event."""

    def processor(_logger: Any, _method: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service)
        event_dict.setdefault("environment", environment)
        return event_dict

    return processor


def _resolve_level(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)


def configure_logging(
    level: Optional[str] = None,
    *,
    service: Optional[str] = None,
    environment: Optional[str] = None,
) -> None:
    """Route stdlib and structlog output to stdout as JSON lines.

    Called without arguments this only configures once per process; passing
    any argument reconfigures.
    """

    global _configured
    explicit = level is not None or service is not None or environment is not None
    if _configured and not explicit:
        return

    from .config import settings

    level = level or settings.log_level or DEFAULT_LOG_LEVEL
    numeric_level = _resolve_level(level)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    # httpx logs every request at INFO; the client logs its own calls
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_service_fields(service or settings.service_name, environment or settings.environment),
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    configure_logging()
    logger = structlog.get_logger(name)
    return logger.bind(**initial_values) if initial_values else logger


def log_context(**values: Any) -> ContextManager[None]:
    """Bind ``values`` to every log line emitted inside the ``with`` block."""

    return structlog.contextvars.bound_contextvars(**values)


__all__ = ["add_service_fields", "configure_logging", "get_logger", "log_context"]
