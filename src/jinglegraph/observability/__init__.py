"""
Observability Module.

Structured logging with JSON or console output.
"""

from jinglegraph.observability.logging import (
    LogContext,
    configure_logging,
    get_logger,
)

__all__ = [
    "LogContext",
    "configure_logging",
    "get_logger",
]
