"""
Retry logic with exponential backoff.

Provides a retry helper and decorator for operations against flaky
external services (Notion, Slack, Figma, the language model).
"""

import logging
import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 1.0  # Seconds
    max_delay: float = 30.0  # Seconds
    timeout: Optional[float] = None  # Overall deadline in seconds


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate delay before the next attempt.

    Args:
        attempt: Attempt that just failed (0-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds: base_delay * 2^attempt, capped at max_delay
    """
    return min(config.base_delay * (2**attempt), config.max_delay)


def is_retryable(error: BaseException) -> bool:
    """Errors flagged with retryable=False are final; network errors are not."""
    if isinstance(error, httpx.RequestError):
        return True
    return getattr(error, "retryable", True) is not False


def retry_with_backoff(
    fn: Callable[[], T],
    config: Optional[RetryConfig] = None,
    should_retry: Callable[[BaseException], bool] = is_retryable,
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """
    Call fn until it succeeds or the attempts run out.

    Args:
        fn: Zero-argument callable to run
        config: Retry configuration (defaults if not provided)
        should_retry: Predicate deciding whether an error is worth retrying
        sleep: Sleep function (defaults to time.sleep)

    Returns:
        The first successful return value of fn

    Raises:
        The last error raised by fn
    """
    config = config or RetryConfig()
    sleep = sleep or time.sleep
    started = time.monotonic()
    last_error: Optional[BaseException] = None

    for attempt in range(config.max_attempts):
        try:
            return fn()
        except Exception as e:
            last_error = e
            if not should_retry(e):
                raise
            if attempt + 1 >= config.max_attempts:
                logger.error(f"Max attempts ({config.max_attempts}) exceeded: {e}")
                break

            delay = calculate_delay(attempt, config)
            if config.timeout is not None:
                elapsed = time.monotonic() - started
                if elapsed + delay > config.timeout:
                    logger.error(
                        f"Retry deadline of {config.timeout}s reached after "
                        f"{attempt + 1} attempts: {e}"
                    )
                    break

            logger.warning(
                f"Attempt {attempt + 1}/{config.max_attempts} failed: {e}, "
                f"retrying in {delay:.2f}s"
            )
            sleep(delay)

    assert last_error is not None
    raise last_error


def with_retry(
    config: Optional[RetryConfig] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator form of retry_with_backoff.

    Args:
        config: Retry configuration (uses defaults if not provided)

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            return retry_with_backoff(lambda: func(*args, **kwargs), config)

        return wrapper

    return decorator
