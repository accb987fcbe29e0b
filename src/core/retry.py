"""
Bounded retry for idempotent repository reads.

Only reads go through here. Writes are never retried: inserting a result twice
would corrupt history.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger

from src.core.errors import TransientRepositoryError

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


async def retry_read(
    operation: Callable[[], Awaitable[T]],
    *,
    description: str,
    attempts: int = 3,
    base_delay: float = 0.5,
    timeout: float | None = None,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Run a read with exponential backoff on transient failures.

    Args:
        operation: Zero-argument coroutine factory performing the read
        description: Short label used in log lines
        attempts: Total attempts, including the first
        base_delay: Delay before the first retry; doubled each time
        timeout: Per-attempt timeout in seconds (a timeout counts as transient)
        sleep: Awaitable sleep, injectable for tests

    Returns:
        Whatever the operation returns

    Raises:
        TransientRepositoryError: When every attempt failed transiently
    """
    last_error: Exception | None = None

    for attempt in range(attempts):
        try:
            if timeout is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=timeout)

        except (TransientRepositoryError, asyncio.TimeoutError) as e:
            last_error = e
            if attempt < attempts - 1:
                wait_time = base_delay * (2 ** attempt)
                logger.warning(
                    f"{description} failed on attempt {attempt + 1}/{attempts}: {e!r}. "
                    f"Retrying in {wait_time:.2f}s..."
                )
                await sleep(wait_time)

    logger.error(f"{description} failed after {attempts} attempts: {last_error!r}")
    raise TransientRepositoryError(
        f"{description} failed after {attempts} attempts"
    ) from last_error
