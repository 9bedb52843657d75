"""Exponential backoff for transient failures."""

import asyncio
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from nousflash.utils.exceptions import NousflashError

T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 3,
    base_delay: float = 0.5,
    description: str = "operation",
) -> T:
    """
    Await ``operation()`` until it succeeds or a non-retryable error occurs.

    Only errors whose ``retryable`` flag is set are retried. The delay doubles
    after each failed attempt.

    Args:
        operation: Zero-argument factory returning a fresh awaitable per attempt
        attempts: Total attempts including the first one
        base_delay: Delay in seconds before the second attempt
        description: Label used in log messages

    Returns:
        Result of the first successful attempt

    Raises:
        NousflashError: The last error when attempts are exhausted, or the
            first non-retryable error
    """
    retry_delay = base_delay
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except NousflashError as e:
            if not e.retryable or attempt == attempts:
                raise
            logger.warning(
                f"{description} failed (attempt {attempt}/{attempts}): {e}; "
                f"retrying in {retry_delay:.1f}s"
            )
            await asyncio.sleep(retry_delay)
            retry_delay *= 2
    raise RuntimeError("retry_async called with attempts < 1")
