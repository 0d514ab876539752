"""
hookrelay - resilient, non-blocking event-notification dispatch.

Hand the engine a ``NotificationEvent`` and it delivers a payload to every
matching destination in the background, gated by a cooldown cache and
protected by a per-destination circuit breaker and backoff retries. The
caller never waits on and never sees a delivery failure.

Example:
    >>> from hookrelay import DispatchEngine, Destination, NotificationEvent
    >>> from hookrelay.notifiers import DiscordNotifier
    >>> async with DispatchEngine() as engine:
    ...     engine.add_destination(Destination.for_notifier(DiscordNotifier(url)))
    ...     engine.notify(NotificationEvent("POST", "/orders", 503))
"""

from hookrelay.core.config import (
    BatchConfig,
    CircuitBreakerConfig,
    CooldownConfig,
    EngineConfig,
    RateLimitConfig,
    RetryConfig,
)
from hookrelay.core.errors import (
    CircuitOpenError,
    ConfigError,
    DeliveryTimeoutError,
    DispatchError,
    PermanentDeliveryError,
    RetriesExhaustedError,
    TransientDeliveryError,
)
from hookrelay.core.models import InspectionRule, NotificationEvent, ResponseStatus
from hookrelay.dispatch import Destination, DispatchEngine, DispatchTask
from hookrelay.execution import (
    BatchAggregator,
    CircuitBreaker,
    CircuitState,
    CooldownCache,
    FireAndForgetRunner,
    RetryExecutor,
    WebhookRetryPolicy,
)
from hookrelay.notifiers import Notifier

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Config
    "BatchConfig",
    "CircuitBreakerConfig",
    "CooldownConfig",
    "EngineConfig",
    "RateLimitConfig",
    "RetryConfig",
    # Errors
    "CircuitOpenError",
    "ConfigError",
    "DeliveryTimeoutError",
    "DispatchError",
    "PermanentDeliveryError",
    "RetriesExhaustedError",
    "TransientDeliveryError",
    # Models
    "InspectionRule",
    "NotificationEvent",
    "ResponseStatus",
    # Engine
    "Destination",
    "DispatchEngine",
    "DispatchTask",
    "Notifier",
    # Primitives
    "BatchAggregator",
    "CircuitBreaker",
    "CircuitState",
    "CooldownCache",
    "FireAndForgetRunner",
    "RetryExecutor",
    "WebhookRetryPolicy",
]
