"""Configuration value objects for the dispatch engine.

Plain dataclasses with no environment coupling; ``hookrelay.core.settings``
builds them from environment variables when an application wants that.
All durations are seconds.

Example:
    >>> from hookrelay.core.config import EngineConfig, RetryConfig
    >>> config = EngineConfig(retry=RetryConfig(max_retries=2, initial_delay=0.5))
    >>> config.retry.backoff_multiplier
    2.0
"""

from __future__ import annotations

from dataclasses import dataclass, field

from hookrelay.core.errors import ConfigError


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Per-destination circuit breaker settings.

    Attributes:
        failure_threshold: Consecutive failures before the circuit opens
        reset_timeout: Seconds an open circuit waits before allowing a probe
    """

    failure_threshold: int = 5
    reset_timeout: float = 60.0

    def __post_init__(self) -> None:
        _require(self.failure_threshold >= 1, "failure_threshold must be >= 1")
        _require(self.reset_timeout >= 0, "reset_timeout must be >= 0")


@dataclass(frozen=True)
class RetryConfig:
    """Backoff retry settings.

    Delay before attempt n (n >= 1) is
    ``min(initial_delay * backoff_multiplier ** (n - 1), max_delay)``,
    shifted by up to ``jitter`` seconds either way.

    Attributes:
        max_retries: Retries after the first attempt (total calls = max_retries + 1)
        initial_delay: Delay before the first retry
        backoff_multiplier: Growth factor between retries
        max_delay: Upper bound on a single delay
        jitter: Absolute random spread added to each delay
        attempt_timeout: Optional time limit for one attempt
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay: float = 30.0
    jitter: float = 0.0
    attempt_timeout: float | None = 10.0

    def __post_init__(self) -> None:
        _require(self.max_retries >= 0, "max_retries must be >= 0")
        _require(self.initial_delay >= 0, "initial_delay must be >= 0")
        _require(self.backoff_multiplier >= 1.0, "backoff_multiplier must be >= 1.0")
        _require(self.max_delay >= 0, "max_delay must be >= 0")
        _require(self.jitter >= 0, "jitter must be >= 0")
        _require(
            self.attempt_timeout is None or self.attempt_timeout > 0,
            "attempt_timeout must be positive",
        )


@dataclass(frozen=True)
class CooldownConfig:
    """Dedup cache settings.

    Attributes:
        cooldown_period: Minimum seconds between sends for one dedup key
        max_entries: Capacity of the cache before oldest entries are evicted
    """

    cooldown_period: float = 60.0
    max_entries: int = 1000

    def __post_init__(self) -> None:
        _require(self.cooldown_period >= 0, "cooldown_period must be >= 0")
        _require(self.max_entries >= 1, "max_entries must be >= 1")


@dataclass(frozen=True)
class BatchConfig:
    """Batch aggregation settings.

    Attributes:
        batch_size: Items that trigger an immediate flush
        batch_timeout: Seconds after the first buffered item before a flush
    """

    batch_size: int = 10
    batch_timeout: float = 5.0

    def __post_init__(self) -> None:
        _require(self.batch_size >= 1, "batch_size must be >= 1")
        _require(self.batch_timeout > 0, "batch_timeout must be positive")


@dataclass(frozen=True)
class RateLimitConfig:
    """Launch rate limiting for the fire-and-forget runner.

    Attributes:
        max_per_key: Launches allowed per key inside the window
        window: Sliding window length in seconds
    """

    max_per_key: int = 60
    window: float = 60.0

    def __post_init__(self) -> None:
        _require(self.max_per_key >= 1, "max_per_key must be >= 1")
        _require(self.window > 0, "window must be positive")


@dataclass(frozen=True)
class EngineConfig:
    """Complete engine configuration.

    ``rate_limit`` is optional; without it launches are never throttled.
    """

    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    cooldown: CooldownConfig = field(default_factory=CooldownConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    rate_limit: RateLimitConfig | None = None
    shutdown_timeout: float = 10.0
