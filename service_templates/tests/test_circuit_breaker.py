"""
Unit tests for the shared circuit breaker and retry helpers.
"""

import pytest
from unittest.mock import AsyncMock

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException, get_circuit_breaker
from shared.retry import retry_on_exception, RetryConfig, RetryError


class TestCircuitBreaker:
    """Test cases for CircuitBreaker."""

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self):
        """Test the breaker opens after repeated failures and blocks calls."""
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60.0, name="test")
        failing = AsyncMock(side_effect=ConnectionError("down"))

        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.call(failing)

        assert breaker.is_open()
        with pytest.raises(CircuitBreakerOpenException):
            await breaker.call(failing)
        assert failing.await_count == 2

    @pytest.mark.asyncio
    async def test_success_resets_failures(self):
        """Test a successful call resets the failure count."""
        breaker = CircuitBreaker(failure_threshold=2, name="test")

        with pytest.raises(ValueError):
            await breaker.call(AsyncMock(side_effect=ValueError("bad")))
        assert await breaker.call(AsyncMock(return_value="ok")) == "ok"

        assert breaker.get_state()["failure_count"] == 0
        assert breaker.get_state()["state"] == "closed"

    def test_manager_reuses_breakers(self):
        """Test breakers are shared by name."""
        assert get_circuit_breaker("shared-name") is get_circuit_breaker("shared-name")


class TestRetry:
    """Test cases for retry_on_exception."""

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        """Test transient failures are retried."""
        func = AsyncMock(side_effect=[ConnectionError("blip"), "ok"])
        func.__name__ = "flaky"
        wrapped = retry_on_exception((ConnectionError,), RetryConfig(max_attempts=3, base_delay=0, jitter=False))(func)

        assert await wrapped() == "ok"
        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_retry_error(self):
        """Test RetryError carries the last exception."""
        func = AsyncMock(side_effect=ConnectionError("down"))
        func.__name__ = "down"
        wrapped = retry_on_exception((ConnectionError,), RetryConfig(max_attempts=2, base_delay=0, jitter=False))(func)

        with pytest.raises(RetryError) as exc_info:
            await wrapped()

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_exception, ConnectionError)
