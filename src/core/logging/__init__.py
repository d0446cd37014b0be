"""
Structured logging module.

Provides JSON logging with context propagation (stage, worker, cycle and
ingest identifiers) across async boundaries.
"""

from core.logging.context import clear_log_context, get_log_context, set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter
from core.logging.setup import (
    generate_cycle_id,
    get_logger,
    log_exception,
    log_with_context,
    setup_logging,
)

__all__ = [
    "clear_log_context",
    "get_log_context",
    "set_log_context",
    "ConsoleFormatter",
    "JSONFormatter",
    "generate_cycle_id",
    "get_logger",
    "log_exception",
    "log_with_context",
    "setup_logging",
]
