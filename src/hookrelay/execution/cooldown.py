"""Cooldown cache: suppress repeat notifications for the same key.

A destination that just received "GET /users → 500" should not receive the
same notice again for every request in a failure storm. ``CooldownCache``
remembers when each dedup key was last delivered and refuses to let it fire
again until ``cooldown_period`` has passed.

The cache is bounded: once it holds more than ``max_entries`` keys the
oldest (by last send time) are evicted, so high-cardinality URIs cannot grow
memory without limit in a long-running process.

Example::

    cache = CooldownCache(cooldown_period=60.0, max_entries=1000)
    if cache.should_send(key):
        await deliver()
        cache.mark_sent(key)
"""

from __future__ import annotations

from hookrelay.core.config import CooldownConfig
from hookrelay.core.logging import get_logger
from hookrelay.core.timestamps import Clock, monotonic

logger = get_logger(__name__)


class CooldownCache:
    """Per-key last-sent timestamps with a suppression window."""

    def __init__(
        self,
        cooldown_period: float = 60.0,
        max_entries: int = 1000,
        *,
        clock: Clock = monotonic,
    ) -> None:
        self._cooldown_period = cooldown_period
        self._max_entries = max_entries
        self._clock = clock
        # Insertion order == last-sent order, since mark_sent re-inserts
        self._last_sent: dict[str, float] = {}

    @classmethod
    def from_config(cls, config: CooldownConfig, *, clock: Clock = monotonic) -> CooldownCache:
        return cls(config.cooldown_period, config.max_entries, clock=clock)

    @property
    def cooldown_period(self) -> float:
        return self._cooldown_period

    @property
    def size(self) -> int:
        """Number of keys currently tracked."""
        return len(self._last_sent)

    def should_send(self, key: str) -> bool:
        """True if ``key`` was never sent or its cooldown has elapsed."""
        last_sent = self._last_sent.get(key)
        if last_sent is None:
            return True

        elapsed = self._clock() - last_sent
        if elapsed >= self._cooldown_period:
            return True

        logger.debug(
            "cooldown.suppressed",
            key=key,
            remaining=self._cooldown_period - elapsed,
        )
        return False

    def mark_sent(self, key: str) -> None:
        """Record a delivery for ``key`` and enforce the capacity bound."""
        self._last_sent.pop(key, None)
        self._last_sent[key] = self._clock()
        self._evict()

    def remaining_cooldown(self, key: str) -> float | None:
        """Seconds until ``key`` may fire again, or None if it may fire now."""
        last_sent = self._last_sent.get(key)
        if last_sent is None:
            return None

        elapsed = self._clock() - last_sent
        if elapsed >= self._cooldown_period:
            return None
        return self._cooldown_period - elapsed

    def clear(self) -> None:
        """Forget every key."""
        self._last_sent.clear()

    def _evict(self) -> None:
        overflow = len(self._last_sent) - self._max_entries
        if overflow <= 0:
            return
        # Oldest first; dicts iterate in insertion order
        for key in list(self._last_sent)[:overflow]:
            del self._last_sent[key]
        logger.debug("cooldown.evicted", count=overflow, size=len(self._last_sent))
