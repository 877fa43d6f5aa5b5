"""Tests for retry utilities."""

from unittest.mock import MagicMock, patch

import pytest

from kangga.core.exceptions import (
    NetworkError,
    PersistenceError,
    TransientError,
    ValidationError,
)
from kangga.core.retry import RetryConfig, with_retry_sync


@pytest.mark.unit
@pytest.mark.critical
class TestRetryConfig:
    """Test RetryConfig defaults and customization."""

    def test_default_config(self):
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.base_delay == 0.05
        assert config.multiplier == 2.0
        assert config.max_delay == 2.0
        assert config.retryable_exceptions == (TransientError,)

    def test_custom_config(self):
        config = RetryConfig(
            max_attempts=5,
            base_delay=0.1,
            multiplier=3.0,
            max_delay=10.0,
            retryable_exceptions=(NetworkError, ValueError),
        )
        assert config.max_attempts == 5
        assert config.retryable_exceptions == (NetworkError, ValueError)


@pytest.mark.unit
@pytest.mark.critical
class TestWithRetrySync:
    """Test sync retry functionality."""

    def test_succeeds_on_first_attempt(self):
        operation = MagicMock(return_value="success")

        result = with_retry_sync(operation)

        assert result == "success"
        assert operation.call_count == 1

    @patch("kangga.core.retry.time.sleep")
    def test_retries_transient_errors(self, mock_sleep):
        operation = MagicMock(side_effect=[PersistenceError("locked"), "success"])

        result = with_retry_sync(operation, RetryConfig(base_delay=0.1))

        assert result == "success"
        assert operation.call_count == 2
        mock_sleep.assert_called_once_with(0.1)

    @patch("kangga.core.retry.time.sleep")
    def test_raises_after_max_attempts(self, mock_sleep):
        operation = MagicMock(side_effect=PersistenceError("locked"))

        with pytest.raises(PersistenceError):
            with_retry_sync(operation, RetryConfig(max_attempts=3))

        assert operation.call_count == 3
        assert mock_sleep.call_count == 2

    @patch("kangga.core.retry.time.sleep")
    def test_permanent_errors_are_not_retried(self, mock_sleep):
        operation = MagicMock(side_effect=ValidationError("bad input"))

        with pytest.raises(ValidationError):
            with_retry_sync(operation)

        assert operation.call_count == 1
        mock_sleep.assert_not_called()

    @patch("kangga.core.retry.time.sleep")
    def test_backoff_is_capped(self, mock_sleep):
        operation = MagicMock(side_effect=NetworkError("down"))
        config = RetryConfig(max_attempts=4, base_delay=1.0, multiplier=10.0, max_delay=5.0)

        with pytest.raises(NetworkError):
            with_retry_sync(operation, config)

        delays = [call.args[0] for call in mock_sleep.call_args_list]
        assert delays == [1.0, 5.0, 5.0]
