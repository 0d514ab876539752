"""
hookrelay execution - resilience primitives for the delivery path.

Leaf-first:

- ``cooldown``: per-key suppression window (``CooldownCache``)
- ``circuit_breaker``: per-destination failure isolation (``CircuitBreaker``)
- ``retry``: exponential backoff with a classification hook (``RetryExecutor``)
- ``timeout``: per-attempt time limit
- ``rate_limit``: sliding-window launch throttling (``KeyedRateLimiter``)
- ``fire_and_forget``: non-blocking task launch with error containment
- ``batch``: size/time triggered aggregation (``BatchAggregator``)
"""

from hookrelay.execution.batch import BatchAggregator
from hookrelay.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitBreakerState,
    CircuitState,
    CircuitStats,
)
from hookrelay.execution.cooldown import CooldownCache
from hookrelay.execution.fire_and_forget import FireAndForgetRunner, LaunchStats
from hookrelay.execution.rate_limit import KeyedRateLimiter, SlidingWindowLimiter
from hookrelay.execution.retry import (
    ExponentialBackoff,
    RetryAttempt,
    RetryExecutor,
    WebhookRetryPolicy,
    retry_everything,
)
from hookrelay.execution.timeout import run_with_timeout_async

__all__ = [
    "BatchAggregator",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitBreakerState",
    "CircuitState",
    "CircuitStats",
    "CooldownCache",
    "ExponentialBackoff",
    "FireAndForgetRunner",
    "KeyedRateLimiter",
    "LaunchStats",
    "RetryAttempt",
    "RetryExecutor",
    "SlidingWindowLimiter",
    "WebhookRetryPolicy",
    "retry_everything",
    "run_with_timeout_async",
]
