"""
Structured error types for hookrelay delivery.

Every failure on the delivery path is one of a small, typed set of errors
that carry retry semantics and context. The dispatch engine never lets any
of them reach the producer of a notification; they are observed only by the
circuit breaker (to update its failure count), the retry executor (to decide
whether to try again) and the logging/metrics sinks.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        DispatchError                             │
        │  (category, retryable, retry_after, context, cause)             │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  TransientDeliveryError   PermanentDeliveryError                 │
        │  (retryable=True)         (retryable=False)                      │
        │       │                                                          │
        │  DeliveryTimeoutError                                            │
        │                                                                  │
        │  RetriesExhaustedError    CircuitOpenError     ConfigError       │
        │  (wraps last error)       (fail fast)          (bad settings)    │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = TransientDeliveryError("HTTP 503", status_code=503)
    >>> error.retryable
    True
    >>> PermanentDeliveryError("HTTP 404", status_code=404).retryable
    False

Tags:
    error-handling, exception-hierarchy, retry-logic, hookrelay
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    NETWORK = "NETWORK"       # Connection, timeout, DNS, 5xx, 429
    REJECTED = "REJECTED"     # 4xx, payload refused by the destination
    CIRCUIT = "CIRCUIT"       # Destination considered unhealthy
    RETRY = "RETRY"           # Retry budget used up
    CONFIG = "CONFIG"         # Invalid configuration
    INTERNAL = "INTERNAL"     # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        destination: Destination key the delivery was aimed at
        operation: Name of the launched operation
        url: URL that was being called
        status_code: HTTP status code if applicable
        attempt: Attempt number that produced the error
        metadata: Additional key-value pairs
    """

    destination: str | None = None
    operation: str | None = None
    url: str | None = None
    status_code: int | None = None
    attempt: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["destination", "operation", "url", "status_code", "attempt"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DispatchError(Exception):
    """
    Base exception for all hookrelay errors.

    Subclasses set ``default_category`` and ``default_retryable`` so callers
    rarely need to pass them explicitly.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: float | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DispatchError:
        """
        Add context to this error (fluent API).

        Usage:
            raise PermanentDeliveryError("rejected").with_context(
                destination="discord:alerts",
                status_code=400,
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# DELIVERY ERRORS
# =============================================================================


class TransientDeliveryError(DispatchError):
    """
    Delivery failed for a reason that may clear up on its own.

    Network errors, timeouts, 5xx responses and 429 rate limiting. Retryable
    by default; ``retry_after`` carries the destination's hint when it sent one.
    """

    default_category = ErrorCategory.NETWORK
    default_retryable = True

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        if status_code is not None:
            self.context.status_code = status_code


class DeliveryTimeoutError(TransientDeliveryError):
    """A single delivery attempt exceeded its time limit."""

    def __init__(self, timeout: float, *, operation: str = "operation", **kwargs: Any):
        super().__init__(f"Operation '{operation}' timed out after {timeout}s", **kwargs)
        self.timeout = timeout
        self.context.operation = operation


class PermanentDeliveryError(DispatchError):
    """
    The destination refused the delivery.

    4xx responses other than 429, or a payload the transport cannot send.
    Never retried.
    """

    default_category = ErrorCategory.REJECTED
    default_retryable = False

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        if status_code is not None:
            self.context.status_code = status_code


class RetriesExhaustedError(DispatchError):
    """Raised once every allowed attempt has failed with a retryable error."""

    default_category = ErrorCategory.RETRY
    default_retryable = False

    def __init__(self, last_error: BaseException, attempts: int, **kwargs: Any):
        super().__init__(
            f"Gave up after {attempts} attempts: {last_error}",
            cause=last_error,
            **kwargs,
        )
        self.last_error = last_error
        self.attempts = attempts
        self.context.attempt = attempts


class CircuitOpenError(DispatchError):
    """Raised when a destination's circuit is open and rejecting calls."""

    default_category = ErrorCategory.CIRCUIT
    default_retryable = False

    def __init__(
        self,
        message: str = "Circuit breaker is open",
        *,
        retry_after: float | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, retry_after=retry_after, **kwargs)


class ConfigError(DispatchError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "DispatchError",
    "TransientDeliveryError",
    "DeliveryTimeoutError",
    "PermanentDeliveryError",
    "RetriesExhaustedError",
    "CircuitOpenError",
    "ConfigError",
]
