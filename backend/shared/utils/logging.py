"""
Structured logging for all MatchScout services.
Uses structlog for context-rich, machine-parseable logs.

Scrape and prediction flows bind the match key and sport to the context so
every log line emitted by concurrent sub-extractions can be correlated.
"""
from __future__ import annotations

import logging
import re
import sys
from contextlib import contextmanager
from typing import Any, Iterator, MutableMapping

import structlog
from shared.config import get_settings

# Keys whose values never reach the log sink verbatim
_SECRET_KEYS = frozenset({"password", "api_key", "apikey", "appid", "token", "authorization"})
_URL_SECRET = re.compile(r"(?i)((?:appid|key|api_key|token)=)[^&\s]+")
_PROXY_CREDENTIALS = re.compile(r"(://)[^/@\s:]+:[^/@\s]+@")


def _redact_secrets(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask credentials in proxy descriptors, query strings and header values."""
    for field, value in list(event_dict.items()):
        if field.lower() in _SECRET_KEYS and value:
            event_dict[field] = "***"
        elif isinstance(value, str):
            masked = _URL_SECRET.sub(r"\1***", value)
            event_dict[field] = _PROXY_CREDENTIALS.sub(r"\1***:***@", masked)
    return event_dict


def setup_logging(service_name: str, extra_context: dict[str, Any] | None = None) -> None:
    """
    Configure structured logging for a service.

    Args:
        service_name: The service identifier (api, worker).
        extra_context: Additional static context fields bound to every log entry.
    """
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        _redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.environment.value == "dev":
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    for noisy in ("uvicorn.access", "httpx", "httpcore", "asyncio", "playwright"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    structlog.contextvars.clear_contextvars()
    bound: dict[str, Any] = {"service": service_name, "instance_id": settings.instance_id}
    if extra_context:
        bound.update(extra_context)
    structlog.contextvars.bind_contextvars(**bound)


@contextmanager
def bound_match_context(match_key: str, sport: str) -> Iterator[None]:
    """Bind match_key/sport to every log line emitted inside the block (task-local)."""
    tokens = structlog.contextvars.bind_contextvars(match_key=match_key, sport=sport)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name)
