"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- PipelineError hierarchy for typed exceptions
- Classification utilities for error handling
"""

from core.errors.exceptions import (
    # Enums
    ErrorCategory,
    InvalidPayloadCode,
    # Base classes
    PipelineError,
    TransientError,
    PermanentError,
    ConfigurationError,
    # Extraction errors
    PayloadExtractError,
    InvalidBackupPayloadError,
    # Unclassified errors
    ExtensionNotImplementedError,
    UnexpectedDeliveryTypeError,
    # Classification utilities
    classify_exception,
    is_terminal_error,
)

__all__ = [
    # Enums
    "ErrorCategory",
    "InvalidPayloadCode",
    # Base classes
    "PipelineError",
    "TransientError",
    "PermanentError",
    "ConfigurationError",
    # Extraction errors
    "PayloadExtractError",
    "InvalidBackupPayloadError",
    # Unclassified errors
    "ExtensionNotImplementedError",
    "UnexpectedDeliveryTypeError",
    # Classification utilities
    "classify_exception",
    "is_terminal_error",
]
