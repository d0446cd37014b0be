"""
Exception types and error classification for backup result ingestion.

Provides:
- ErrorCategory enum for handling decisions
- Typed exception hierarchy for ingest errors
- Error classification utilities
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that may succeed on a later attempt
                   (e.g., network timeouts, throttling)
        PERMANENT: Failures that won't succeed on a later attempt
                   (e.g., unknown client, unparseable payload)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class InvalidPayloadCode(str, Enum):
    """Machine-readable codes carried by InvalidBackupPayloadError."""

    CLIENT_NOT_FOUND = "CLIENT_NOT_FOUND"
    CLIENT_KEY_MISMATCH = "CLIENT_KEY_MISMATCH"
    EXTRACT_METRICS = "EXTRACT_METRICS"
    INVALID_QUEUE_JSON = "INVALID_QUEUE_JSON"


class PipelineError(Exception):
    """
    Base exception for all ingest errors.

    Attributes:
        message: Human-readable error description
        category: Error classification
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether a later attempt could succeed."""
        return self.category in (ErrorCategory.TRANSIENT, ErrorCategory.UNKNOWN)

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Transient / Permanent bases
# =============================================================================


class TransientError(PipelineError):
    """Base class for transient errors."""

    category = ErrorCategory.TRANSIENT


class PermanentError(PipelineError):
    """Base class for permanent errors."""

    category = ErrorCategory.PERMANENT


class ConfigurationError(PermanentError):
    """Invalid configuration."""

    pass


# =============================================================================
# Extraction Errors
# =============================================================================


class PayloadExtractError(PermanentError):
    """
    A metadata extractor does not apply to the given payload.

    This is the expected negative signal from one strategy in the extractor
    chain, not a terminal failure on its own.
    """

    pass


class InvalidBackupPayloadError(PermanentError):
    """
    Terminal, classified failure to ingest a backup result.

    Attributes:
        code: InvalidPayloadCode describing the failure
        ingest_id: Identifier of the ingest attempt
        backup_id: Backup identifier, None when metadata could not be extracted
    """

    def __init__(
        self,
        message: str,
        code: InvalidPayloadCode,
        ingest_id: str,
        backup_id: Optional[str] = None,
        context: Optional[dict] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause=cause, context=context)
        self.code = InvalidPayloadCode(code)
        self.ingest_id = ingest_id
        self.backup_id = backup_id

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for logging and dead-letter records."""
        return {
            "error_code": self.code.value,
            "ingest_id": self.ingest_id,
            "backup_id": self.backup_id,
            "error_message": self.message,
            "context": {k: _stringify(v) for k, v in self.context.items()},
        }


# =============================================================================
# Unclassified Fatal Errors
# =============================================================================


class ExtensionNotImplementedError(PipelineError, NotImplementedError):
    """An extension point was used without a concrete implementation."""

    pass


class UnexpectedDeliveryTypeError(PipelineError):
    """Backup result metadata names a delivery type with no metrics extractor."""

    def __init__(self, delivery_type: Any):
        super().__init__(
            f"Unexpected delivery type: {delivery_type}",
            context={"delivery_type": delivery_type},
        )
        self.delivery_type = delivery_type


# =============================================================================
# Error Classification Utilities
# =============================================================================


def _stringify(value: Any) -> Any:
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    return value


def classify_exception(exc: Exception) -> ErrorCategory:
    """
    Classify an exception into error category.

    Args:
        exc: Exception to classify

    Returns:
        Appropriate ErrorCategory
    """
    # Already classified
    if isinstance(exc, PipelineError):
        return exc.category

    exc_type = type(exc).__name__.lower()
    exc_str = str(exc).lower()

    connection_markers = (
        "connectionerror",
        "connection refused",
        "connection reset",
        "connection aborted",
        "no route to host",
        "network unreachable",
        "name resolution",
        "broken pipe",
    )
    if any(m in exc_type or m in exc_str for m in connection_markers):
        return ErrorCategory.TRANSIENT

    if "timeout" in exc_type or "timeout" in exc_str:
        return ErrorCategory.TRANSIENT

    if "429" in exc_str or "throttl" in exc_str or "rate limit" in exc_str:
        return ErrorCategory.TRANSIENT

    if "503" in exc_str or "502" in exc_str or "504" in exc_str:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


def is_terminal_error(exc: Exception) -> bool:
    """Whether an ingest failure should not be attempted again."""
    return classify_exception(exc) == ErrorCategory.PERMANENT
