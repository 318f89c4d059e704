"""Retry utilities with exponential backoff for coroutine functions."""

import asyncio
from typing import Awaitable, Callable, Tuple, Type, TypeVar

import structlog

from recordsync.exceptions import TRANSIENT_ERRORS
from recordsync.models.config import RetryConfig

log = structlog.stdlib.get_logger()

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number ``attempt + 1``."""
    return min(base_delay * (2**attempt), max_delay)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exceptions: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS,
    description: str | None = None,
) -> T:
    """
    Await ``operation()`` and retry it with exponential backoff.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        max_retries: Maximum number of retry attempts after the first call
        base_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        exceptions: Exception types that trigger a retry; anything else propagates
        description: Name used in log events

    Returns:
        Result of the first successful attempt

    Raises:
        The last exception once max_retries is exhausted
    """
    name = description or getattr(operation, "__name__", "operation")

    for attempt in range(max_retries + 1):
        try:
            return await operation()
        except exceptions as e:
            if attempt == max_retries:
                log.error(
                    "max_retries_reached",
                    function=name,
                    max_retries=max_retries,
                    error=str(e),
                )
                raise

            delay = backoff_delay(attempt, base_delay, max_delay)
            log.warning(
                "retrying_after_error",
                function=name,
                attempt=attempt + 1,
                max_retries=max_retries,
                delay_seconds=delay,
                error=str(e),
            )
            await asyncio.sleep(delay)

    raise AssertionError("unreachable")


async def retry_with_config(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig,
    description: str | None = None,
) -> T:
    return await retry_async(
        operation,
        max_retries=config.max_retries,
        base_delay=config.base_delay,
        max_delay=config.max_delay,
        description=description,
    )
