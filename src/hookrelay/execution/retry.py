"""Retry with exponential backoff, jitter, and a classification hook.

``RetryExecutor`` wraps one async delivery and re-invokes it on failure.
Attempt 0 is unconditional; after each failure the classifier decides
whether the error is worth retrying at all, and the backoff schedule
decides how long to wait::

    delay before attempt n (n >= 1) = min(initial_delay * multiplier ** (n - 1), max_delay)
                                      ± uniform(jitter), clamped at 0

Non-retryable errors propagate unchanged. When every allowed attempt has
failed the executor raises :class:`~hookrelay.core.errors.RetriesExhaustedError`
chained to the last error, so the circuit breaker above it sees one failure.

Example:
    >>> executor = RetryExecutor(
    ...     ExponentialBackoff(max_retries=2, initial_delay=1.0),
    ...     classify=WebhookRetryPolicy(),
    ... )
    >>> await executor.execute(lambda: notifier.send(payload), operation_name="discord")
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import httpx

from hookrelay.core.config import RetryConfig
from hookrelay.core.errors import (
    CircuitOpenError,
    DispatchError,
    RetriesExhaustedError,
)
from hookrelay.core.logging import get_logger
from hookrelay.execution.timeout import run_with_timeout_async

T = TypeVar("T")

Classifier = Callable[[BaseException], bool]
Sleep = Callable[[float], Awaitable[None]]

logger = get_logger(__name__)


def retry_everything(error: BaseException) -> bool:
    """Default classifier: every failure is worth another try."""
    return True


@dataclass
class ExponentialBackoff:
    """Exponential backoff schedule with optional absolute jitter.

    ``RetryExecutor`` lets a larger ``retry_after`` hint on the failed
    attempt replace this schedule's delay, capped at ``max_delay``.

    Attributes:
        max_retries: Retries after the first attempt
        initial_delay: Delay before the first retry, in seconds
        multiplier: Growth factor between retries
        max_delay: Cap on any single delay
        jitter: Random spread in seconds, applied as ``delay ± uniform(jitter)``
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    jitter: float = 0.0
    rng: random.Random = field(default_factory=random.Random, repr=False)

    @classmethod
    def from_config(cls, config: RetryConfig) -> ExponentialBackoff:
        return cls(
            max_retries=config.max_retries,
            initial_delay=config.initial_delay,
            multiplier=config.backoff_multiplier,
            max_delay=config.max_delay,
            jitter=config.jitter,
        )

    def base_delay(self, attempt: int) -> float:
        """Delay before ``attempt`` (1-based retry number), without jitter."""
        return min(
            self.initial_delay * (self.multiplier ** (attempt - 1)),
            self.max_delay,
        )

    def next_delay(self, attempt: int) -> float:
        """Delay before ``attempt`` with jitter applied."""
        delay = self.base_delay(attempt)
        if self.jitter:
            delay += self.rng.uniform(-self.jitter, self.jitter)
            delay = max(0.0, delay)  # Ensure non-negative
        return delay

    def should_retry(self, attempts_made: int) -> bool:
        """True while the retry budget allows another call."""
        return attempts_made <= self.max_retries


@dataclass(frozen=True)
class RetryAttempt:
    """One scheduled retry, handed to the ``on_retry`` hook."""

    attempt: int
    delay: float
    error: BaseException
    operation: str


def _status_code(error: BaseException) -> int | None:
    status = getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


@dataclass
class WebhookRetryPolicy:
    """Classifier for HTTP webhook deliveries.

    Retries network errors, timeouts, 5xx and 429; gives up on other 4xx.
    Subclass or pass different attributes to change the policy.

    Attributes:
        retryable_statuses: Status codes always retried (default: 429)
        retry_server_errors: Retry any 5xx
        retry_unknown: Verdict for errors carrying no status or retry hint
    """

    retryable_statuses: frozenset[int] = frozenset({429})
    retry_server_errors: bool = True
    retry_unknown: bool = True

    def __call__(self, error: BaseException) -> bool:
        if isinstance(error, (CircuitOpenError, RetriesExhaustedError)):
            return False

        status = _status_code(error)
        if status is not None:
            if status in self.retryable_statuses:
                return True
            if 500 <= status < 600:
                return self.retry_server_errors
            if 400 <= status < 500:
                return False

        if isinstance(error, DispatchError):
            return error.retryable

        if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
            return True

        return self.retry_unknown


class RetryExecutor:
    """Runs an async operation with bounded, backed-off retries.

    Parameters
    ----------
    backoff : ExponentialBackoff
        Retry budget and delay schedule.
    classify : Callable[[BaseException], bool]
        Default classifier; ``execute`` may override it per call.
    attempt_timeout : float | None
        Time limit for a single attempt.
    sleep : Callable[[float], Awaitable[None]]
        Delay function (``asyncio.sleep``); injectable for tests.
    on_retry : Callable[[RetryAttempt], None]
        Called before each retry sleep.

    Notes
    -----
    The delay before retry ``n`` is ``min(initial_delay * multiplier ** (n - 1),
    max_delay)`` plus jitter. When the failed attempt carries a larger
    ``retry_after`` hint (HTTP ``Retry-After``), that hint is used instead,
    still capped at ``max_delay``.
    """

    def __init__(
        self,
        backoff: ExponentialBackoff | None = None,
        *,
        classify: Classifier | None = None,
        attempt_timeout: float | None = None,
        sleep: Sleep = asyncio.sleep,
        on_retry: Callable[[RetryAttempt], None] | None = None,
    ) -> None:
        self._backoff = backoff or ExponentialBackoff()
        self._classify = classify or retry_everything
        self._attempt_timeout = attempt_timeout
        self._sleep = sleep
        self._on_retry = on_retry

    @classmethod
    def from_config(
        cls,
        config: RetryConfig,
        *,
        classify: Classifier | None = None,
        sleep: Sleep = asyncio.sleep,
        on_retry: Callable[[RetryAttempt], None] | None = None,
    ) -> RetryExecutor:
        return cls(
            ExponentialBackoff.from_config(config),
            classify=classify,
            attempt_timeout=config.attempt_timeout,
            sleep=sleep,
            on_retry=on_retry,
        )

    @property
    def backoff(self) -> ExponentialBackoff:
        return self._backoff

    async def _attempt(self, operation: Callable[[], Awaitable[T]], name: str) -> T:
        if self._attempt_timeout is None:
            return await operation()
        return await run_with_timeout_async(operation(), self._attempt_timeout, operation=name)

    def _is_retryable(self, classify: Classifier, error: Exception, name: str) -> bool:
        try:
            return bool(classify(error))
        except Exception as classify_error:
            logger.error(
                "retry.classifier_failed",
                operation=name,
                error=str(classify_error),
            )
            return False

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        classify: Classifier | None = None,
        operation_name: str | None = None,
    ) -> T:
        """Execute ``operation`` with retry logic.

        Args:
            operation: Zero-argument callable returning an awaitable
            classify: Per-call classifier overriding the executor default
            operation_name: Name for logs

        Returns:
            Result of the first successful attempt

        Raises:
            RetriesExhaustedError: All ``max_retries + 1`` attempts failed
            Exception: The first non-retryable error, unchanged
        """
        classifier = classify or self._classify
        name = operation_name or "unnamed"
        attempts = 0

        while True:
            try:
                result = await self._attempt(operation, name)
            except Exception as e:
                attempts += 1

                if not self._is_retryable(classifier, e, name):
                    logger.info(
                        "retry.not_retryable",
                        operation=name,
                        attempt=attempts,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    raise

                if not self._backoff.should_retry(attempts):
                    logger.warning(
                        "retry.exhausted",
                        operation=name,
                        attempts=attempts,
                        error=str(e),
                    )
                    raise RetriesExhaustedError(e, attempts).with_context(operation=name) from e

                delay = self._backoff.next_delay(attempts)
                retry_after = getattr(e, "retry_after", None)
                if isinstance(retry_after, (int, float)) and retry_after > delay:
                    delay = min(float(retry_after), self._backoff.max_delay)

                if self._on_retry:
                    self._on_retry(RetryAttempt(attempts, delay, e, name))

                logger.info(
                    "retry.scheduled",
                    operation=name,
                    attempt=attempts,
                    delay=round(delay, 3),
                    error=str(e),
                )
                await self._sleep(delay)
                continue

            if attempts > 0:
                logger.info("retry.succeeded", operation=name, attempt=attempts + 1)
            return result
