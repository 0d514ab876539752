"""Rate limiting: sliding-window launch throttling.

A failure storm in the host application can produce thousands of
notification launches per second. ``KeyedRateLimiter`` caps how many
launches a single key (usually a destination) may make inside a sliding
window. Over-limit requests are refused immediately; nothing here ever
blocks or queues, because the launch path must stay non-blocking.

ARCHITECTURE
────────────
::

    SlidingWindowLimiter   ─ exact count in a rolling window
    KeyedRateLimiter       ─ one SlidingWindowLimiter per key, created lazily

Example::

    limiter = KeyedRateLimiter(max_requests=60, window_seconds=60.0)
    if limiter.acquire("discord:alerts"):
        runner.launch(send)
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from hookrelay.core.config import RateLimitConfig
from hookrelay.core.timestamps import Clock, monotonic


@dataclass
class SlidingWindowLimiter:
    """Sliding window rate limiter.

    Counts requests in a sliding time window; more accurate than fixed
    windows and free of boundary bursts.

    Attributes:
        max_requests: Maximum requests per window
        window_seconds: Window size in seconds
        clock: Monotonic time source
    """

    max_requests: int
    window_seconds: float
    clock: Clock = monotonic

    _timestamps: deque[float] = field(default_factory=deque, init=False)

    def _cleanup(self, now: float) -> None:
        """Remove timestamps outside the window."""
        cutoff = now - self.window_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def acquire(self, tokens: int = 1) -> bool:
        """Record ``tokens`` requests if the window has room."""
        now = self.clock()
        self._cleanup(now)

        if len(self._timestamps) + tokens > self.max_requests:
            return False

        self._timestamps.extend([now] * tokens)
        return True

    def get_wait_time(self, tokens: int = 1) -> float:
        """Get seconds until the window has room."""
        now = self.clock()
        self._cleanup(now)

        available = self.max_requests - len(self._timestamps)
        if available >= tokens:
            return 0.0

        need_to_expire = tokens - available
        if need_to_expire <= len(self._timestamps):
            oldest = self._timestamps[need_to_expire - 1]
            return max(0.0, (oldest + self.window_seconds) - now)

        return self.window_seconds

    @property
    def current_count(self) -> int:
        """Get current request count in window."""
        self._cleanup(self.clock())
        return len(self._timestamps)


@dataclass
class KeyedRateLimiter:
    """Sliding-window limits applied independently per key.

    Example:
        >>> limiter = KeyedRateLimiter(max_requests=2, window_seconds=60.0)
        >>> limiter.acquire("a"), limiter.acquire("a"), limiter.acquire("a")
        (True, True, False)
        >>> limiter.acquire("b")
        True
    """

    max_requests: int = 60
    window_seconds: float = 60.0
    clock: Clock = monotonic
    cleanup_interval: int = 1000  # Drop idle keys every N acquires

    _limiters: dict[str, SlidingWindowLimiter] = field(default_factory=dict, init=False)
    _acquire_count: int = field(default=0, init=False)

    @classmethod
    def from_config(cls, config: RateLimitConfig, *, clock: Clock = monotonic) -> KeyedRateLimiter:
        return cls(max_requests=config.max_per_key, window_seconds=config.window, clock=clock)

    def _get_limiter(self, key: str) -> SlidingWindowLimiter:
        """Get or create limiter for key."""
        limiter = self._limiters.get(key)
        if limiter is None:
            limiter = SlidingWindowLimiter(
                max_requests=self.max_requests,
                window_seconds=self.window_seconds,
                clock=self.clock,
            )
            self._limiters[key] = limiter
        return limiter

    def _maybe_cleanup(self) -> None:
        """Periodically forget keys with an empty window."""
        self._acquire_count += 1
        if self._acquire_count >= self.cleanup_interval:
            self._acquire_count = 0
            idle = [key for key, limiter in self._limiters.items() if limiter.current_count == 0]
            for key in idle:
                del self._limiters[key]

    def acquire(self, key: str, tokens: int = 1) -> bool:
        """Acquire tokens for a specific key."""
        self._maybe_cleanup()
        return self._get_limiter(key).acquire(tokens)

    def get(self, key: str) -> SlidingWindowLimiter | None:
        """Get limiter for key if exists."""
        return self._limiters.get(key)

    def count(self, key: str) -> int:
        """Requests recorded for ``key`` in the current window."""
        limiter = self._limiters.get(key)
        return limiter.current_count if limiter else 0

    def get_wait_time(self, key: str, tokens: int = 1) -> float:
        """Get wait time for a specific key."""
        return self._get_limiter(key).get_wait_time(tokens)

    def remove(self, key: str) -> None:
        """Remove limiter for key."""
        self._limiters.pop(key, None)

    def clear(self) -> None:
        """Forget every key."""
        self._limiters.clear()
