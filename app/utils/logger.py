"""
Structured logging for the pre-qualification assistant.

All services log through structlog key/value events. A chat turn binds its
session id into the context once (``bind_session``) so every event the
extractor, state machine, calculator and notifiers emit during that turn can
be correlated without threading the id through each call.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Optional

import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder
from structlog.stdlib import BoundLogger, LoggerFactory

# Applicant fields that never go to the log stream verbatim
REDACTED_FIELDS = frozenset({"email", "phone", "code", "to"})


def redact_contact_details(_logger: Any, _method: str, event_dict: dict) -> dict:
    for key in REDACTED_FIELDS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str) and len(value) > 4:
            event_dict[key] = f"***{value[-4:]}"
        elif value is not None:
            event_dict[key] = "***"
    return event_dict


def _renderer(log_format: str):
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stdout.isatty(), exception_formatter=structlog.dev.plain_traceback
    )


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    include_timestamp: bool = True,
    include_callsite: bool = False,
) -> None:
    """
    Configure stdlib logging and structlog together.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ...)
        log_format: ``json`` for machine-readable output, anything else for console
        include_timestamp: Add an ISO timestamp to each event
        include_callsite: Add module, function and line number to each event
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        redact_contact_details,
    ]
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    if include_callsite:
        processors.append(
            CallsiteParameterAdder(
                [
                    CallsiteParameter.MODULE,
                    CallsiteParameter.FUNC_NAME,
                    CallsiteParameter.LINENO,
                ]
            )
        )
    processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _renderer(log_format),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> BoundLogger:
    return structlog.get_logger(name)


class LoggerMixin:
    """Gives a class a ``logger`` named after the class."""

    @property
    def logger(self) -> BoundLogger:
        return get_logger(type(self).__name__)


@contextmanager
def bind_session(session_id: str, **context: Any) -> Iterator[None]:
    """Attach ``session_id`` (and extra context) to every event logged inside the block."""
    tokens = structlog.contextvars.bind_contextvars(session_id=session_id, **context)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


def _context_logger(name: str, **context: Any) -> BoundLogger:
    return get_logger(name).bind(**{k: v for k, v in context.items() if v is not None})


def log_api_request(method: str, path: str, **kwargs: Any) -> BoundLogger:
    """Logger for a single HTTP request; status and timing are added per event."""
    return _context_logger("api_request", method=method, path=path, **kwargs)


def log_borrowing_calculation(has_second_applicant: bool = False, **kwargs: Any) -> BoundLogger:
    return _context_logger(
        "borrowing_calculation", has_second_applicant=has_second_applicant, **kwargs
    )


def log_extraction(phase: str, **kwargs: Any) -> BoundLogger:
    return _context_logger("field_extraction", phase=phase, **kwargs)


def log_llm_interaction(
    model: Optional[str] = None,
    tokens_used: Optional[int] = None,
    response_time_ms: Optional[float] = None,
    **kwargs: Any,
) -> BoundLogger:
    """
    Logger for one reply-model call.

    Args:
        model: Chat model name
        tokens_used: Total tokens reported by the provider, when available
        response_time_ms: Wall time of the call
    """
    return _context_logger(
        "llm_interaction",
        model=model,
        tokens_used=tokens_used,
        response_time_ms=response_time_ms,
        **kwargs,
    )


configure_logging()
