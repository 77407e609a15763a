"""
Tests for circuit breaker implementation.
"""
import time

import pytest

from fivec.core.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpenError,
    CircuitState,
)
from fivec.core.exceptions import ConfigError, GatewayError


class TestCircuitBreakerConfig:
    """Test circuit breaker configuration."""

    def test_default_config(self):
        config = CircuitBreakerConfig()
        assert config.failure_threshold == 5
        assert config.success_threshold == 3
        assert config.timeout == 60
        assert config.half_open_max_calls == 5


class TestCircuitBreaker:
    """Test circuit breaker functionality."""

    @pytest.fixture
    def circuit_breaker(self):
        config = CircuitBreakerConfig(
            failure_threshold=3,
            success_threshold=2,
            timeout=1,  # Short timeout for testing
        )
        return CircuitBreaker("SMS Gateway", config)

    @pytest.fixture
    def failing_function(self):
        async def fail_func():
            raise GatewayError("SMS Gateway", "Service unavailable")
        return fail_func

    @pytest.fixture
    def successful_function(self):
        async def success_func():
            return {"sid": "SM123"}
        return success_func

    @pytest.mark.asyncio
    async def test_initial_closed_state(self, circuit_breaker):
        assert circuit_breaker.state == CircuitState.CLOSED
        assert circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, circuit_breaker, failing_function, successful_function):
        for _ in range(2):
            with pytest.raises(GatewayError):
                await circuit_breaker.call_async(failing_function)

        result = await circuit_breaker.call_async(successful_function)

        assert result == {"sid": "SM123"}
        assert circuit_breaker.failure_count == 0
        assert circuit_breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_circuit_opens_after_failure_threshold(self, circuit_breaker, failing_function):
        for _ in range(3):
            with pytest.raises(GatewayError):
                await circuit_breaker.call_async(failing_function)

        assert circuit_breaker.state == CircuitState.OPEN

        with pytest.raises(CircuitBreakerOpenError):
            await circuit_breaker.call_async(failing_function)

        assert circuit_breaker.metrics.rejected_calls == 1

    @pytest.mark.asyncio
    async def test_half_open_then_closed(self, circuit_breaker, failing_function, successful_function):
        for _ in range(3):
            with pytest.raises(GatewayError):
                await circuit_breaker.call_async(failing_function)

        time.sleep(1.1)  # Slightly longer than configured timeout

        await circuit_breaker.call_async(successful_function)
        assert circuit_breaker.state == CircuitState.HALF_OPEN

        await circuit_breaker.call_async(successful_function)
        assert circuit_breaker.state == CircuitState.CLOSED
        assert circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_failure_in_half_open_reopens(self, circuit_breaker, failing_function):
        for _ in range(3):
            with pytest.raises(GatewayError):
                await circuit_breaker.call_async(failing_function)

        time.sleep(1.1)

        with pytest.raises(GatewayError):
            await circuit_breaker.call_async(failing_function)

        assert circuit_breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_ignored_exceptions_do_not_count(self):
        breaker = CircuitBreaker(
            "SMS Gateway",
            CircuitBreakerConfig(failure_threshold=1),
            ignored_exceptions=(ConfigError,),
        )

        async def misconfigured():
            raise ConfigError("Twilio", missing=["TWILIO_AUTH_TOKEN"])

        with pytest.raises(ConfigError):
            await breaker.call_async(misconfigured)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_status_and_reset(self, circuit_breaker, failing_function):
        with pytest.raises(GatewayError):
            await circuit_breaker.call_async(failing_function)

        status = circuit_breaker.get_status()
        assert status["service"] == "SMS Gateway"
        assert status["state"] == "closed"
        assert status["failure_count"] == 1
        assert status["metrics"]["failure_rate"] == 1.0

        circuit_breaker.reset()

        assert circuit_breaker.get_status()["metrics"]["total_calls"] == 0
