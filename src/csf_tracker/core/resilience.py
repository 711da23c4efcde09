"""Retry handling for calls to external issue trackers.

Errors are categorised so that transient failures (network, timeouts,
rate limits, 5xx responses) are retried with exponential backoff while
validation and authentication failures surface immediately.
"""

import asyncio
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import structlog

from csf_tracker.core.errors import ExternalServiceError, TrackerError

logger = structlog.get_logger(__name__)


class ErrorCategory(str, Enum):
    """Categories for error classification."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    PARSING = "parsing"
    STORAGE = "storage"
    EXTERNAL_SERVICE = "external_service"
    UNKNOWN = "unknown"


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: tuple = (
        ConnectionError,
        TimeoutError,
        asyncio.TimeoutError,
    )


class ErrorCategorizer:
    """Categorizes errors for logging and retry decisions."""

    EXCEPTION_CATEGORIES = {
        ConnectionError: ErrorCategory.NETWORK,
        TimeoutError: ErrorCategory.TIMEOUT,
        asyncio.TimeoutError: ErrorCategory.TIMEOUT,
        PermissionError: ErrorCategory.AUTHENTICATION,
        ValueError: ErrorCategory.VALIDATION,
        KeyError: ErrorCategory.VALIDATION,
    }

    MESSAGE_KEYWORDS = {
        ErrorCategory.NETWORK: ["connection", "network", "dns", "socket", "refused"],
        ErrorCategory.TIMEOUT: ["timeout", "timed out", "deadline"],
        ErrorCategory.RATE_LIMIT: ["rate limit", "429", "too many requests", "throttl"],
        ErrorCategory.AUTHENTICATION: ["auth", "401", "403", "forbidden", "unauthorized", "credential"],
        ErrorCategory.PARSING: ["parse", "decode", "invalid format", "malformed"],
    }

    CODE_CATEGORIES = {
        "CSV_PARSE": ErrorCategory.PARSING,
        "INTERCHANGE_FORMAT": ErrorCategory.PARSING,
        "VALIDATION": ErrorCategory.VALIDATION,
        "MIGRATION": ErrorCategory.STORAGE,
        "SNAPSHOT_STORAGE": ErrorCategory.STORAGE,
        "EXTERNAL_SERVICE": ErrorCategory.EXTERNAL_SERVICE,
    }

    @classmethod
    def categorize(cls, error: Exception) -> ErrorCategory:
        """Categorize an exception.

        Args:
            error: The exception to categorize.

        Returns:
            ErrorCategory for the exception.
        """
        for exc_type, category in cls.EXCEPTION_CATEGORIES.items():
            if isinstance(error, exc_type):
                return category

        if isinstance(error, ExternalServiceError) and error.status_code:
            if error.status_code == 429:
                return ErrorCategory.RATE_LIMIT
            if error.status_code in (401, 403):
                return ErrorCategory.AUTHENTICATION
            if 400 <= error.status_code < 500:
                return ErrorCategory.VALIDATION
            return ErrorCategory.EXTERNAL_SERVICE

        error_msg = str(error).lower()
        for category, keywords in cls.MESSAGE_KEYWORDS.items():
            if any(kw in error_msg for kw in keywords):
                return category

        if isinstance(error, TrackerError) and error.error_code:
            return cls.CODE_CATEGORIES.get(error.error_code, ErrorCategory.UNKNOWN)

        return ErrorCategory.UNKNOWN

    @classmethod
    def is_retryable(cls, error: Exception) -> bool:
        """Determine if an error is retryable.

        Args:
            error: The exception to check.

        Returns:
            True if the error can be retried.
        """
        category = cls.categorize(error)
        retryable_categories = {
            ErrorCategory.NETWORK,
            ErrorCategory.TIMEOUT,
            ErrorCategory.RATE_LIMIT,
            ErrorCategory.EXTERNAL_SERVICE,
        }
        return category in retryable_categories


class RetryHandler:
    """Handles retry logic with exponential backoff."""

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for a retry attempt.

        Args:
            attempt: Current attempt number (0-indexed).

        Returns:
            Delay in seconds.
        """
        delay = self.config.base_delay * (self.config.exponential_base ** attempt)
        delay = min(delay, self.config.max_delay)

        if self.config.jitter:
            # +/-25%
            delay += delay * 0.25 * (2 * random.random() - 1)

        return max(0, delay)

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """Determine if an operation should be retried.

        Args:
            error: The exception that occurred.
            attempt: Current attempt number.

        Returns:
            True if should retry.
        """
        if attempt >= self.config.max_retries:
            return False

        if isinstance(error, self.config.retryable_exceptions):
            return True

        return ErrorCategorizer.is_retryable(error)

    async def execute_with_retry(
        self,
        func: Callable[..., Any],
        *args,
        component: str = "unknown",
        **kwargs,
    ) -> Any:
        """Execute an async function with retry logic.

        Args:
            func: Async function to execute.
            *args: Positional arguments for func.
            component: Component name for logging.
            **kwargs: Keyword arguments for func.

        Returns:
            Result of the function.

        Raises:
            The last exception if all retries fail.
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.config.max_retries + 1):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                last_error = e

                if not self.should_retry(e, attempt):
                    logger.warning(
                        "retry_not_possible",
                        component=component,
                        attempt=attempt,
                        category=ErrorCategorizer.categorize(e).value,
                        error=str(e),
                    )
                    raise

                delay = self.calculate_delay(attempt)
                logger.info(
                    "retrying_operation",
                    component=component,
                    attempt=attempt + 1,
                    max_retries=self.config.max_retries,
                    delay=delay,
                )
                await asyncio.sleep(delay)

        if last_error:
            raise last_error
