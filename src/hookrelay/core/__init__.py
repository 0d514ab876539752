"""hookrelay core - error taxonomy, data model, configuration and logging."""

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
    ErrorCategory,
    ErrorContext,
    PermanentDeliveryError,
    RetriesExhaustedError,
    TransientDeliveryError,
)
from hookrelay.core.logging import configure_logging, get_logger
from hookrelay.core.models import (
    InspectionRule,
    NotificationEvent,
    ResponseStatus,
    dedup_key,
)

__all__ = [
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
    "ErrorCategory",
    "ErrorContext",
    "PermanentDeliveryError",
    "RetriesExhaustedError",
    "TransientDeliveryError",
    # Logging
    "configure_logging",
    "get_logger",
    # Models
    "InspectionRule",
    "NotificationEvent",
    "ResponseStatus",
    "dedup_key",
]
