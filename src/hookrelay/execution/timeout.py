"""Timeout enforcement for single delivery attempts.

A hung destination must not pin a dispatch task forever. Each attempt made
by :class:`~hookrelay.execution.retry.RetryExecutor` can be bounded with
:func:`run_with_timeout_async`; an expired attempt surfaces as
:class:`~hookrelay.core.errors.DeliveryTimeoutError`, which is transient and
therefore retried like any other network failure.

This is distinct from retry backoff: the timeout bounds one attempt, the
backoff spaces attempts apart.

Example:
    >>> result = await run_with_timeout_async(
    ...     notifier.send(payload),
    ...     10.0,
    ...     operation="discord",
    ... )
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

from hookrelay.core.errors import DeliveryTimeoutError

T = TypeVar("T")


async def run_with_timeout_async(
    awaitable: Awaitable[T],
    timeout_seconds: float,
    operation: str | None = None,
) -> T:
    """Run an awaitable with a timeout.

    Args:
        awaitable: Coroutine or future to await
        timeout_seconds: Maximum execution time
        operation: Name for error messages

    Returns:
        Result of the awaitable

    Raises:
        DeliveryTimeoutError: If execution exceeds the timeout
        ValueError: If ``timeout_seconds`` is not positive
        Exception: Any exception raised by the awaitable
    """
    if timeout_seconds <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout_seconds}")

    start = time.monotonic()

    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except TimeoutError as e:
        elapsed = time.monotonic() - start
        raise DeliveryTimeoutError(
            timeout_seconds,
            operation=operation or "operation",
        ).with_context(elapsed=round(elapsed, 3)) from e
