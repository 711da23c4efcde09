"""Tests for resilience patterns - retry logic and error categorisation."""

import pytest

from csf_tracker.core.errors import (
    CSVParseError,
    ExternalServiceError,
    MigrationError,
    ValidationError,
)
from csf_tracker.core.resilience import (
    ErrorCategorizer,
    ErrorCategory,
    RetryConfig,
    RetryHandler,
)


class TestErrorCategorizer:
    """Tests for ErrorCategorizer class."""

    def test_categorize_connection_error(self):
        """Test categorization of connection errors."""
        error = ConnectionError("Connection refused")
        assert ErrorCategorizer.categorize(error) == ErrorCategory.NETWORK

    def test_categorize_timeout_error(self):
        """Test categorization of timeout errors."""
        error = TimeoutError("Request timed out")
        assert ErrorCategorizer.categorize(error) == ErrorCategory.TIMEOUT

    @pytest.mark.parametrize("status,expected", [
        (429, ErrorCategory.RATE_LIMIT),
        (401, ErrorCategory.AUTHENTICATION),
        (403, ErrorCategory.AUTHENTICATION),
        (404, ErrorCategory.VALIDATION),
        (503, ErrorCategory.EXTERNAL_SERVICE),
    ])
    def test_categorize_external_service_status(self, status, expected):
        """Test categorization of issue tracker responses by status code."""
        error = ExternalServiceError("Request failed", service="jira", status_code=status)
        assert ErrorCategorizer.categorize(error) == expected

    def test_categorize_by_message_rate_limit(self):
        """Test categorization by error message for rate limiting."""
        error = Exception("429 Too Many Requests")
        assert ErrorCategorizer.categorize(error) == ErrorCategory.RATE_LIMIT

    def test_categorize_tracker_errors_by_code(self):
        """Test categorization of tracker errors through their error code."""
        assert ErrorCategorizer.categorize(CSVParseError("Unterminated quote", line_number=3)) == ErrorCategory.PARSING
        assert ErrorCategorizer.categorize(ValidationError("bad score")) == ErrorCategory.VALIDATION
        assert ErrorCategorizer.categorize(MigrationError("cannot upgrade", store="users")) == ErrorCategory.STORAGE

    def test_categorize_unknown(self):
        """Test categorization of unknown errors."""
        assert ErrorCategorizer.categorize(Exception("Some random error")) == ErrorCategory.UNKNOWN

    def test_is_retryable(self):
        """Test which categories are retried."""
        assert ErrorCategorizer.is_retryable(ConnectionError("Connection failed")) is True
        assert ErrorCategorizer.is_retryable(ExternalServiceError("busy", status_code=503)) is True
        assert ErrorCategorizer.is_retryable(ExternalServiceError("gone", status_code=404)) is False
        assert ErrorCategorizer.is_retryable(ValueError("Invalid input")) is False


class TestErrorFormatting:
    """Tests for the error hierarchy."""

    def test_str_includes_code(self):
        error = ValidationError("Score out of range", field="actual_score", entity_id="CTL-001")
        assert str(error) == "[VALIDATION] Score out of range"
        assert error.details == {"field": "actual_score", "entity_id": "CTL-001"}

    def test_csv_parse_error_line_number(self):
        error = CSVParseError("Unterminated quote", line_number=7)
        assert error.line_number == 7
        assert error.details["line_number"] == 7


class TestRetryHandler:
    """Tests for RetryHandler class."""

    @pytest.fixture
    def handler(self):
        config = RetryConfig(
            max_retries=3,
            base_delay=0.01,  # Short delay for tests
            max_delay=0.1,
            jitter=False,
        )
        return RetryHandler(config)

    def test_calculate_delay_exponential(self, handler):
        """Test exponential backoff calculation."""
        delays = [handler.calculate_delay(i) for i in range(4)]
        assert delays == [0.01, 0.02, 0.04, 0.08]

    def test_calculate_delay_max_cap(self):
        """Test delay is capped at max_delay."""
        handler = RetryHandler(RetryConfig(base_delay=1.0, max_delay=5.0, jitter=False))
        assert handler.calculate_delay(10) == 5.0

    def test_should_retry_retryable_error(self, handler):
        """Test should_retry for retryable errors."""
        error = ConnectionError("Connection failed")
        assert handler.should_retry(error, 0) is True
        assert handler.should_retry(error, 2) is True
        assert handler.should_retry(error, 3) is False

    def test_should_retry_non_retryable_error(self, handler):
        """Test should_retry for non-retryable errors."""
        assert handler.should_retry(ValidationError("bad"), 0) is False

    @pytest.mark.asyncio
    async def test_execute_with_retry_eventual_success(self, handler):
        """Test retry leading to eventual success."""
        call_count = 0

        async def eventual_success(value, suffix=""):
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ConnectionError("Temporary failure")
            return value + suffix

        result = await handler.execute_with_retry(eventual_success, "FND-", suffix="1", component="test")
        assert result == "FND-1"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_execute_with_retry_all_fail(self, handler):
        """Test all retries failing."""
        call_count = 0

        async def always_fail():
            nonlocal call_count
            call_count += 1
            raise ConnectionError("Persistent failure")

        with pytest.raises(ConnectionError):
            await handler.execute_with_retry(always_fail, component="test")

        assert call_count == 4  # Initial + 3 retries

    @pytest.mark.asyncio
    async def test_non_retryable_error_raised_immediately(self, handler):
        call_count = 0

        async def rejected():
            nonlocal call_count
            call_count += 1
            raise ExternalServiceError("Unauthorized", service="jira", status_code=401)

        with pytest.raises(ExternalServiceError):
            await handler.execute_with_retry(rejected, component="test")

        assert call_count == 1
