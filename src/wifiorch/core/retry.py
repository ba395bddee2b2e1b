"""Retry logic with exponential backoff.

``RetryConfig.calculate_delay`` is the single backoff formula used both by
the connection retry policy in the network manager and by the
``async_retry`` decorator that wraps flaky native tool calls.
"""

import asyncio
import functools
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, ParamSpec, TypeVar

from .errors import CommandTimeoutError

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including first try)
        base_delay: Delay in seconds before the first retry
        max_delay: Maximum delay cap in seconds (None=uncapped)
        exponential_base: Growth factor between consecutive retries
        jitter: Whether to add random jitter to delays
        retryable_exceptions: Tuple of exception types that trigger retry
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float | None = None
    exponential_base: float = 1.5
    jitter: bool = False
    retryable_exceptions: tuple[type[Exception], ...] = field(
        default_factory=lambda: (CommandTimeoutError, TimeoutError, OSError)
    )

    def calculate_delay(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (1-indexed).

        ``base_delay * exponential_base ** (retry_number - 1)``, capped by
        ``max_delay`` and optionally scaled by 50-100% jitter.

        Args:
            retry_number: Which retry this is, starting at 1

        Returns:
            Delay in seconds
        """
        if retry_number < 1:
            raise ValueError("retry_number starts at 1")
        delay = self.base_delay * (self.exponential_base ** (retry_number - 1))
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random() * 0.5
        return delay

    def delays(self) -> list[float]:
        """All retry delays for this config, in order."""
        return [self.calculate_delay(n) for n in range(1, self.max_attempts)]


# Native tool calls that occasionally hang on busy radios
COMMAND_RETRY_CONFIG = RetryConfig(max_attempts=2, base_delay=1.0)


def async_retry(
    config: RetryConfig | None = None,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator for async retry with exponential backoff.

    Usage:
        @async_retry(RetryConfig(max_attempts=2))
        async def list_networks():
            ...
    """
    if config is None:
        config = RetryConfig()

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            last_exception: Exception | None = None

            for attempt in range(1, config.max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except config.retryable_exceptions as e:
                    last_exception = e
                    if attempt < config.max_attempts:
                        delay = config.calculate_delay(attempt)
                        logger.warning(
                            "Async retry %d/%d after %.1fs: %s",
                            attempt,
                            config.max_attempts - 1,
                            delay,
                            str(e),
                            extra={
                                "function": func.__name__,
                                "error_type": type(e).__name__,
                            },
                        )
                        await asyncio.sleep(delay)
                    else:
                        logger.error(
                            "All %d async attempts failed for %s",
                            config.max_attempts,
                            func.__name__,
                        )

            if last_exception:
                raise last_exception
            raise RuntimeError("Async retry failed with no exception")

        return wrapper

    return decorator
