"""
Retry with exponential backoff for calls that leave the process.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from .logging import setup_order_logging

T = TypeVar("T")

default_logger = setup_order_logging("order_service_retry")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters; ``max_retries`` counts attempts after the first"""

    max_retries: int = 3
    initial_delay_ms: float = 100
    max_delay_ms: float = 10000
    backoff_multiplier: float = 2.0

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_retries=settings.RETRY_MAX_RETRIES,
            initial_delay_ms=settings.RETRY_INITIAL_DELAY_MS,
            max_delay_ms=settings.RETRY_MAX_DELAY_MS,
            backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay in milliseconds before the retry that follows ``attempt``"""
        return min(
            self.initial_delay_ms * self.backoff_multiplier**attempt,
            self.max_delay_ms,
        )


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay_ms: float = 100,
    max_delay_ms: float = 10000,
    backoff_multiplier: float = 2.0,
    logger: Optional[logging.Logger] = None,
    non_retryable: Tuple[Type[BaseException], ...] = (),
) -> T:
    """
    Await ``operation()`` until it succeeds or ``max_retries`` retries are spent.

    The last error is re-raised unchanged. Errors matching ``non_retryable``
    are re-raised immediately.
    """
    policy = RetryPolicy(max_retries, initial_delay_ms, max_delay_ms, backoff_multiplier)
    return await retry_with_policy(operation, policy, logger, non_retryable)


async def retry_with_policy(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    logger: Optional[logging.Logger] = None,
    non_retryable: Tuple[Type[BaseException], ...] = (),
) -> T:
    log = logger or default_logger
    attempt = 0
    while True:
        try:
            return await operation()
        except non_retryable:
            raise
        except Exception as e:
            if attempt >= policy.max_retries:
                raise

            delay_ms = policy.delay_for(attempt)
            log.warning(
                f"Retry attempt {attempt + 1}/{policy.max_retries} after {delay_ms}ms",
                extra={
                    "attempt": attempt + 1,
                    "max_retries": policy.max_retries,
                    "delay_ms": delay_ms,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            await asyncio.sleep(delay_ms / 1000)
            attempt += 1
