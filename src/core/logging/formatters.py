"""Log formatters for JSON and console output."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List

from core.logging.context import get_log_context


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    return str(value)


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # Correlation
        "ingest_id",
        "backup_id",
        "client_id",
        "backup_type",
        "delivery_type",
        # Coordinator
        "available_results",
        "worker_count",
        "succeeded",
        "failed",
        # Worker
        "batch_size",
        "records_processed",
        "records_succeeded",
        "records_failed",
        "records_rejected",
        "records_unsettled",
        # Errors
        "error_category",
        "error_message",
        "error_code",
        "error_type",
        "extract_errors",
        "persisted",
        # Timing
        "duration_ms",
        # Message transport metadata
        "message_topic",
        "message_partition",
        "message_offset",
    ]

    CONTEXT_FIELDS = ["stage", "worker_id", "cycle_id", "ingest_id"]

    @staticmethod
    def _base_log_entry(record: logging.LogRecord) -> Dict[str, Any]:
        return {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    def _inject_exception(self, log_entry: Dict[str, Any], record: logging.LogRecord) -> None:
        if not record.exc_info:
            return

        exc_type, exc_value, _ = record.exc_info
        log_entry["exception"] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
            "stacktrace": self.formatException(record.exc_info),
        }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a single-line JSON object."""
        log_entry = self._base_log_entry(record)

        log_context = get_log_context()
        for field in self.CONTEXT_FIELDS:
            if log_context.get(field):
                log_entry[field] = log_context[field]

        # Source location for DEBUG/ERROR
        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        self._inject_exception(log_entry, record)

        return json.dumps(log_entry, default=_json_default, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter with color-coded log levels.

    Colors are auto-disabled when output is not a TTY (pipes, files).
    """

    # ANSI color codes
    COLORS = {
        logging.DEBUG: "\033[36m",  # Cyan
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._use_colors = sys.stdout.isatty()

    def _format_level_name(self, record: logging.LogRecord) -> str:
        level_name = record.levelname
        if not self._use_colors:
            return level_name

        color = self.COLORS.get(record.levelno, "")
        if not color:
            return level_name

        return f"{color}{level_name}{self.RESET}"

    @staticmethod
    def _build_tags(record: logging.LogRecord, log_context: Dict[str, str]) -> List[str]:
        ingest_id = getattr(record, "ingest_id", None) or log_context.get("ingest_id")
        backup_id = getattr(record, "backup_id", None)

        tags = []
        if ingest_id:
            tags.append(f"[{ingest_id[:8]}]")
        if backup_id:
            tags.append(f"[backup:{backup_id}]")
        return tags

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output with optional color coding."""
        log_context = get_log_context()

        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            self._format_level_name(record),
        ]
        if log_context["stage"]:
            parts.append(f"[{log_context['stage']}]")
        prefix = " - ".join(parts)

        tags = self._build_tags(record, log_context)
        message = record.getMessage()
        if tags:
            message = f"{' '.join(tags)} {message}"

        line = f"{prefix} - {message}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line
