"""
Structured logging for the catalog integrity tools.

Reports are printed on stdout, so every log line goes to stderr. Log
context (the relationship type under audit, the Fabrica being reordered)
is carried in structlog's context variables and merged into each event.
"""

import logging
import sys
from collections.abc import Mapping
from contextvars import Token
from enum import Enum
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

REDACTED = "***REDACTED***"
SENSITIVE_KEY_PARTS = ("password", "secret", "token", "authorization", "credential")

# Third-party loggers that are noisy at DEBUG
QUIET_LOGGERS = ("neo4j", "asyncio")


class LogContext:
    """
    Bind key/value pairs to every log event emitted inside the block.

        with LogContext(relationship_type="APPEARS_IN"):
            logger.info("Auditing relationships")

    Nested blocks add to the outer context; leaving a block restores what
    was bound before it.
    """

    def __init__(self, **values: Any):
        self.values = values
        self._tokens: Mapping[str, Token[Any]] = {}

    def __enter__(self) -> "LogContext":
        self._tokens = structlog.contextvars.bind_contextvars(**self.values)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        structlog.contextvars.reset_contextvars(**self._tokens)
        self._tokens = {}
        return False


def add_log_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Merge LogContext values into the event; keys passed explicitly win."""
    return structlog.contextvars.merge_contextvars(logger, method_name, event_dict)


def flatten_enums(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Log NodeLabel / RelationType members by value."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def _is_sensitive(key: Any) -> bool:
    lowered = str(key).lower()
    return any(part in lowered for part in SENSITIVE_KEY_PARTS)


def _censor(key: Any, value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _censor(k, v) for k, v in value.items()}
    if isinstance(value, str) and _is_sensitive(key):
        return REDACTED
    return value


def censor_sensitive_data(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Replace string values under credential-like keys, including nested dicts."""
    return {key: _censor(key, value) for key, value in event_dict.items()}


def configure_logging(
    level: str = "INFO",
    format: Literal["json", "console"] = "console",
    app_name: str = "jinglegraph",
    environment: str | None = None,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Log level name, case-insensitive
        format: "json" for machine-readable lines, "console" for humans
        app_name: Value of the ``app`` key on every event
        environment: Value of the ``env`` key on every event, omitted when None
    """

    def add_app_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("app", app_name)
        if environment is not None:
            event_dict.setdefault("env", environment)
        return event_dict

    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer(default=str)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            add_log_context,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_app_name,
            flatten_enums,
            censor_sensitive_data,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=logging.getLevelName(level.upper()),
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, typically ``get_logger(__name__)``."""
    return structlog.get_logger(name)
