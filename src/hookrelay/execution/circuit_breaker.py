"""Circuit breaker pattern for fault tolerance.

Stops calling a destination that keeps failing, so a dead webhook does not
cost a full retry cycle for every notification.

States:
    CLOSED: Normal operation, calls pass through
    OPEN: Failing fast, calls rejected with CircuitOpenError
    HALF_OPEN: One probe call in flight, testing if the destination recovered

Transitions::

    CLOSED ──(failure_threshold consecutive failures)──▶ OPEN
    OPEN ──(reset_timeout elapsed, next call)──▶ HALF_OPEN
    HALF_OPEN ──(probe succeeds)──▶ CLOSED
    HALF_OPEN ──(probe fails)──▶ OPEN   (timeout window restarts)

Every state change happens synchronously before or after the awaited
operation, never across an ``await``, so concurrent tasks on one event loop
cannot interleave a read-then-write of the breaker state.

Example:
    >>> breaker = CircuitBreaker("discord:alerts", failure_threshold=3, reset_timeout=60.0)
    >>> await breaker.call(lambda: notifier.send(payload))
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TypeVar

from hookrelay.core.config import CircuitBreakerConfig
from hookrelay.core.errors import CircuitOpenError
from hookrelay.core.logging import get_logger
from hookrelay.core.timestamps import Clock, monotonic, utc_now

T = TypeVar("T")

logger = get_logger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"        # Normal operation
    OPEN = "open"            # Rejecting calls
    HALF_OPEN = "half_open"  # Probing recovery


@dataclass(frozen=True)
class CircuitBreakerState:
    """Point-in-time view of one breaker."""

    state: CircuitState
    consecutive_failures: int
    last_failure_at: float | None


@dataclass
class CircuitStats:
    """Statistics for circuit breaker monitoring."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    rejected_requests: int = 0
    state_changes: int = 0
    last_failure_time: datetime | None = None
    last_success_time: datetime | None = None
    last_state_change: datetime | None = None

    @property
    def failure_rate(self) -> float:
        """Calculate failure rate as percentage."""
        total = self.successful_requests + self.failed_requests
        if total == 0:
            return 0.0
        return (self.failed_requests / total) * 100


@dataclass
class CircuitBreaker:
    """Circuit breaker guarding one destination.

    Attributes:
        name: Identifier for this circuit (the destination key)
        failure_threshold: Consecutive failures before opening
        reset_timeout: Seconds to wait before probing recovery
        clock: Monotonic time source
    """

    name: str = "default"
    failure_threshold: int = 5
    reset_timeout: float = 60.0
    clock: Clock = monotonic

    # Internal state
    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _consecutive_failures: int = field(default=0, init=False)
    _last_failure_at: float | None = field(default=None, init=False)
    _probe_in_flight: bool = field(default=False, init=False)
    _stats: CircuitStats = field(default_factory=CircuitStats, init=False)

    @property
    def state(self) -> CircuitState:
        """Current state; an expired OPEN only turns HALF_OPEN on the next call."""
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state != CircuitState.CLOSED

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def last_failure_at(self) -> float | None:
        return self._last_failure_at

    @property
    def stats(self) -> CircuitStats:
        """Get circuit statistics."""
        return self._stats

    def snapshot(self) -> CircuitBreakerState:
        return CircuitBreakerState(
            state=self._state,
            consecutive_failures=self._consecutive_failures,
            last_failure_at=self._last_failure_at,
        )

    def _transition_to(self, new_state: CircuitState) -> None:
        """Transition to a new state."""
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        self._stats.state_changes += 1
        self._stats.last_state_change = utc_now()
        logger.info(
            "circuit.state_changed",
            circuit=self.name,
            old_state=old_state.value,
            new_state=new_state.value,
            consecutive_failures=self._consecutive_failures,
        )

    def _remaining_timeout(self) -> float:
        if self._last_failure_at is None:
            return 0.0
        return max(0.0, self.reset_timeout - (self.clock() - self._last_failure_at))

    def _admit(self) -> bool:
        """Gate a call. Returns True if the admitted call is the half-open probe.

        Raises:
            CircuitOpenError: If the circuit is rejecting calls
        """
        self._stats.total_requests += 1

        if self._state == CircuitState.CLOSED:
            return False

        if self._state == CircuitState.OPEN and self._remaining_timeout() <= 0:
            self._transition_to(CircuitState.HALF_OPEN)
            self._probe_in_flight = True
            return True

        # OPEN inside the timeout window, or HALF_OPEN with the probe still running
        self._stats.rejected_requests += 1
        raise CircuitOpenError(
            f"Circuit '{self.name}' is open, rejecting request",
            retry_after=self._remaining_timeout(),
        ).with_context(destination=self.name)

    def record_success(self) -> None:
        """Record a successful call."""
        self._stats.successful_requests += 1
        self._stats.last_success_time = utc_now()
        self._consecutive_failures = 0
        self._probe_in_flight = False
        self._transition_to(CircuitState.CLOSED)

    def record_failure(self, error: BaseException | None = None) -> None:
        """Record a failed call."""
        self._consecutive_failures += 1
        self._last_failure_at = self.clock()
        self._stats.failed_requests += 1
        self._stats.last_failure_time = utc_now()

        if self._state == CircuitState.HALF_OPEN:
            # The probe failed; start a fresh timeout window
            self._probe_in_flight = False
            self._transition_to(CircuitState.OPEN)
        elif (
            self._state == CircuitState.CLOSED
            and self._consecutive_failures >= self.failure_threshold
        ):
            self._transition_to(CircuitState.OPEN)
            logger.warning(
                "circuit.opened",
                circuit=self.name,
                failures=self._consecutive_failures,
                reset_timeout=self.reset_timeout,
                error=str(error) if error is not None else None,
            )

    def reset(self) -> None:
        """Force the circuit closed and clear counters."""
        self._consecutive_failures = 0
        self._last_failure_at = None
        self._probe_in_flight = False
        self._transition_to(CircuitState.CLOSED)

    def force_open(self) -> None:
        """Force circuit to open state (for testing/maintenance)."""
        self._consecutive_failures = max(self._consecutive_failures, self.failure_threshold)
        self._last_failure_at = self.clock()
        self._probe_in_flight = False
        self._transition_to(CircuitState.OPEN)

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Execute an async operation through the circuit breaker.

        Args:
            operation: Zero-argument callable returning an awaitable

        Returns:
            The operation's result

        Raises:
            CircuitOpenError: If the circuit is open (operation not invoked)
            Exception: Whatever the operation raised, after it was recorded
        """
        is_probe = self._admit()

        try:
            result = await operation()
        except Exception as e:
            self.record_failure(e)
            raise
        except BaseException:
            # Cancelled mid-probe: no verdict, let the next call probe again
            if is_probe and self._state == CircuitState.HALF_OPEN:
                self._probe_in_flight = False
                self._transition_to(CircuitState.OPEN)
            raise

        self.record_success()
        return result


class CircuitBreakerRegistry:
    """Breakers keyed by destination, created lazily on first use.

    Owned by a dispatch engine instance; there is no process-wide default.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        *,
        clock: Clock = monotonic,
    ):
        self._config = config or CircuitBreakerConfig()
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker | None:
        """Get a circuit breaker by name, returns None if not found."""
        return self._breakers.get(name)

    def get_or_create(self, name: str) -> CircuitBreaker:
        """Get or create the circuit breaker for ``name``."""
        breaker = self._breakers.get(name)
        if breaker is None:
            breaker = CircuitBreaker(
                name=name,
                failure_threshold=self._config.failure_threshold,
                reset_timeout=self._config.reset_timeout,
                clock=self._clock,
            )
            self._breakers[name] = breaker
        return breaker

    def list_all(self) -> list[str]:
        """List all registered circuit breaker names."""
        return list(self._breakers.keys())

    def states(self) -> dict[str, CircuitBreakerState]:
        """Snapshot of every breaker."""
        return {name: breaker.snapshot() for name, breaker in self._breakers.items()}

    def remove(self, name: str) -> None:
        """Remove a circuit breaker by name."""
        self._breakers.pop(name, None)

    def clear(self) -> None:
        """Remove all circuit breakers."""
        self._breakers.clear()

    def reset_all(self) -> None:
        """Reset all circuit breakers."""
        for breaker in self._breakers.values():
            breaker.reset()

    def __len__(self) -> int:
        return len(self._breakers)
