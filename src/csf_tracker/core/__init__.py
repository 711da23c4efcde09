"""Core utilities for the assessment tracker."""

from csf_tracker.core.config import TrackerConfig
from csf_tracker.core.logging import get_logger, configure_logging
from csf_tracker.core.errors import (
    TrackerError,
    CSVParseError,
    ValidationError,
    InterchangeFormatError,
    MigrationError,
    SnapshotStorageError,
    ExternalServiceError,
)
from csf_tracker.core.resilience import (
    RetryConfig,
    RetryHandler,
    ErrorCategory,
    ErrorCategorizer,
)

__all__ = [
    # Config
    "TrackerConfig",
    # Logging
    "get_logger",
    "configure_logging",
    # Errors
    "TrackerError",
    "CSVParseError",
    "ValidationError",
    "InterchangeFormatError",
    "MigrationError",
    "SnapshotStorageError",
    "ExternalServiceError",
    # Resilience
    "RetryConfig",
    "RetryHandler",
    "ErrorCategory",
    "ErrorCategorizer",
]
