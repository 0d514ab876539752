"""Environment-driven settings for hookrelay.

The engine itself only takes plain value objects (:mod:`hookrelay.core.config`).
Applications that prefer configuring through the environment use
``HookrelaySettings``, which reads ``HOOKRELAY_*`` variables and ``.env``
files and converts to an :class:`~hookrelay.core.config.EngineConfig`.

Examples:
    >>> import os
    >>> os.environ["HOOKRELAY_MAX_RETRIES"] = "5"
    >>> settings = get_settings(_force_reload=True)
    >>> settings.to_engine_config().retry.max_retries
    5

Tags:
    settings, configuration, pydantic, environment, hookrelay
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hookrelay.core.config import (
    BatchConfig,
    CircuitBreakerConfig,
    CooldownConfig,
    EngineConfig,
    RateLimitConfig,
    RetryConfig,
)


class HookrelaySettings(BaseSettings):
    """hookrelay centralized configuration.

    All fields can be set via ``HOOKRELAY_*`` environment variables (e.g.
    ``HOOKRELAY_FAILURE_THRESHOLD=3``) or through a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="HOOKRELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Circuit breaker ──────────────────────────────────────────
    failure_threshold: int = Field(default=5, ge=1)
    reset_timeout: float = Field(default=60.0, ge=0)

    # ── Retry ────────────────────────────────────────────────────
    max_retries: int = Field(default=3, ge=0)
    initial_delay: float = Field(default=1.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    max_delay: float = Field(default=30.0, ge=0)
    jitter: float = Field(default=0.0, ge=0)
    attempt_timeout: float | None = Field(default=10.0, gt=0)

    # ── Cooldown ─────────────────────────────────────────────────
    cooldown_period: float = Field(default=60.0, ge=0)
    max_cache_entries: int = Field(default=1000, ge=1)

    # ── Batching ─────────────────────────────────────────────────
    batch_size: int = Field(default=10, ge=1)
    batch_timeout: float = Field(default=5.0, gt=0)

    # ── Rate limiting ────────────────────────────────────────────
    rate_limit_enabled: bool = Field(default=False)
    max_launches_per_key: int = Field(default=60, ge=1)
    rate_limit_window: float = Field(default=60.0, gt=0)

    # ── Lifecycle ────────────────────────────────────────────────
    shutdown_timeout: float = Field(default=10.0, ge=0)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_json: bool | None = Field(default=None, description="None = JSON when stdout is not a TTY")

    @model_validator(mode="after")
    def _check_delays(self) -> HookrelaySettings:
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        return self

    def to_engine_config(self) -> EngineConfig:
        """Build the engine's value-object configuration."""
        rate_limit = None
        if self.rate_limit_enabled:
            rate_limit = RateLimitConfig(
                max_per_key=self.max_launches_per_key,
                window=self.rate_limit_window,
            )
        return EngineConfig(
            circuit_breaker=CircuitBreakerConfig(
                failure_threshold=self.failure_threshold,
                reset_timeout=self.reset_timeout,
            ),
            retry=RetryConfig(
                max_retries=self.max_retries,
                initial_delay=self.initial_delay,
                backoff_multiplier=self.backoff_multiplier,
                max_delay=self.max_delay,
                jitter=self.jitter,
                attempt_timeout=self.attempt_timeout,
            ),
            cooldown=CooldownConfig(
                cooldown_period=self.cooldown_period,
                max_entries=self.max_cache_entries,
            ),
            batch=BatchConfig(
                batch_size=self.batch_size,
                batch_timeout=self.batch_timeout,
            ),
            rate_limit=rate_limit,
            shutdown_timeout=self.shutdown_timeout,
        )


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: HookrelaySettings | None = None


def get_settings(*, _force_reload: bool = False) -> HookrelaySettings:
    """Load, validate, and cache a :class:`HookrelaySettings` instance."""
    global _settings_cache
    if _settings_cache is None or _force_reload:
        _settings_cache = HookrelaySettings()
    return _settings_cache


def clear_settings_cache() -> None:
    """Forget the cached settings (tests, reconfiguration)."""
    global _settings_cache
    _settings_cache = None
