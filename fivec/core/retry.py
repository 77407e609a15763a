"""
Retry logic with exponential backoff using tenacity.
"""
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

logger = structlog.get_logger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry logic."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    retryable_exceptions: tuple = (
        httpx.ConnectError,
        httpx.TimeoutException,
        ConnectionError,
        TimeoutError,
    )


def create_async_retry_decorator(
    config: Optional[RetryConfig] = None,
    service_name: str = "Unknown Service",
) -> Callable:
    """Create a retry decorator for async gateway calls.

    Only transport-level failures are retried; provider rejections and
    configuration errors surface on the first attempt.
    """
    config = config or RetryConfig()

    def _before_sleep(retry_state: RetryCallState) -> None:
        logger.warning(
            "Retrying failed async operation",
            service=service_name,
            attempt=retry_state.attempt_number,
            max_attempts=config.max_attempts,
            delay=retry_state.next_action.sleep,
            exception=str(retry_state.outcome.exception()),
        )

    return retry(
        stop=stop_after_attempt(config.max_attempts),
        wait=wait_random_exponential(multiplier=config.base_delay, max=config.max_delay),
        retry=retry_if_exception_type(config.retryable_exceptions),
        before_sleep=_before_sleep,
        reraise=True,
    )


def get_gateway_retry_config(max_attempts: int = 3, base_delay: float = 1.0) -> RetryConfig:
    """Get retry configuration for email/SMS gateways."""
    return RetryConfig(max_attempts=max_attempts, base_delay=base_delay, max_delay=10.0)


def get_compute_retry_config(max_attempts: int = 2, base_delay: float = 2.0) -> RetryConfig:
    """Get retry configuration for match/export compute services."""
    return RetryConfig(max_attempts=max_attempts, base_delay=base_delay, max_delay=30.0)
