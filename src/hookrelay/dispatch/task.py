"""DispatchTask: one delivery to one destination.

The resilience chain is fixed::

    breaker.call(lambda: retry.execute(lambda: notifier.send(payload)))

The breaker sees a whole retry cycle as one call, so a destination that
keeps failing opens after ``failure_threshold`` exhausted cycles, not
after ``failure_threshold`` individual attempts. Every dedup key the task
carries is marked sent only once the delivery succeeded.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from hookrelay.core.errors import CircuitOpenError
from hookrelay.core.logging import LogContext, get_logger
from hookrelay.core.models import NotificationEvent, dedup_key
from hookrelay.core.timestamps import Clock, monotonic
from hookrelay.dispatch.destination import Destination
from hookrelay.execution.circuit_breaker import CircuitBreaker
from hookrelay.execution.cooldown import CooldownCache
from hookrelay.execution.retry import RetryExecutor
from hookrelay.observability.metrics import DispatchMetrics

logger = get_logger(__name__)


@dataclass
class DispatchTask:
    """A notice (or a flushed batch of notices) bound for one destination."""

    destination: Destination
    events: Sequence[NotificationEvent]
    breaker: CircuitBreaker
    retry: RetryExecutor
    cooldown: CooldownCache
    batched: bool = False
    metrics: DispatchMetrics | None = None
    clock: Clock = monotonic

    dedup_keys: tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        if not self.events:
            raise ValueError("DispatchTask needs at least one event")
        keys = (dedup_key(self.destination.key, event) for event in self.events)
        self.dedup_keys = tuple(dict.fromkeys(keys))

    def render(self) -> Any:
        if self.batched:
            return self.destination.render_batch(list(self.events))
        return self.destination.render(self.events[0])

    async def run(self) -> None:
        """Deliver once through breaker and retry; raises on terminal failure."""
        key = self.destination.key
        payload = self.render()
        started = self.clock()

        try:
            async with LogContext(destination=key):
                await self.breaker.call(
                    lambda: self.retry.execute(
                        lambda: self.destination.notifier.send(payload),
                        classify=self.destination.classify,
                        operation_name=key,
                    )
                )
        except CircuitOpenError:
            self._record("circuit_open")
            raise
        except Exception:
            self._record("failed", self.clock() - started)
            raise

        for dedup in self.dedup_keys:
            self.cooldown.mark_sent(dedup)

        self._record("success", self.clock() - started)
        logger.info(
            "dispatch.delivered",
            destination=key,
            events=len(self.events),
            batched=self.batched,
        )

    def _record(self, outcome: str, duration: float | None = None) -> None:
        if self.metrics is None:
            return
        self.metrics.record_delivery(self.destination.key, outcome, duration)
        self.metrics.record_circuit_state(self.destination.key, self.breaker.state.value)
