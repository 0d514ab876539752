"""
DispatchEngine - non-blocking notification fan-out.

The producer calls :meth:`DispatchEngine.notify` from its own code path.
``notify`` is synchronous, returns immediately and never raises; every
delivery happens in a background task owned by the engine's
:class:`~hookrelay.execution.fire_and_forget.FireAndForgetRunner`.

Flow for one event and one matching destination::

    notify(event)
      └─ dispatch(event, key)
           ├─ CooldownCache.should_send(dedup_key)  ── no ──▶ dropped silently
           ├─ destination.batch ──▶ BatchAggregator.add(event)
           │                           └─ flush ──▶ DispatchTask(batch)
           └─ runner.launch(DispatchTask(event).run)
                 └─ breaker.call(retry.execute(notifier.send(payload)))
                       └─ success ──▶ CooldownCache.mark_sent(dedup_keys)

All engine state (breakers, cooldown entries, batch buffers) lives on the
instance and is created lazily; ``shutdown`` flushes buffers, drains
running deliveries and tears the state down.

Example:
    >>> engine = DispatchEngine(EngineConfig())
    >>> engine.add_destination(Destination.for_notifier(DiscordNotifier(url)))
    >>> engine.notify(NotificationEvent("GET", "/users", 500))
    1
    >>> await engine.shutdown()
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

from hookrelay.core.config import EngineConfig
from hookrelay.core.logging import get_logger
from hookrelay.core.models import NotificationEvent, dedup_key
from hookrelay.core.timestamps import Clock, monotonic
from hookrelay.dispatch.destination import Destination
from hookrelay.dispatch.task import DispatchTask
from hookrelay.execution.batch import BatchAggregator
from hookrelay.execution.circuit_breaker import CircuitBreakerRegistry, CircuitBreakerState
from hookrelay.execution.cooldown import CooldownCache
from hookrelay.execution.fire_and_forget import ErrorSink, FireAndForgetRunner
from hookrelay.execution.rate_limit import KeyedRateLimiter
from hookrelay.execution.retry import (
    Classifier,
    RetryAttempt,
    RetryExecutor,
    Sleep,
    WebhookRetryPolicy,
)
from hookrelay.observability.metrics import DispatchMetrics

logger = get_logger(__name__)


class DispatchEngine:
    """Routes notification events to destinations without blocking the caller.

    Args:
        config: Engine configuration (defaults for every component if omitted)
        clock: Monotonic time source shared by every component
        sleep: Retry delay function
        metrics: Metrics sink; a private one is created if omitted
        on_error: Called with ``(error, task_name)`` for every failed delivery
        classify: Default retry classifier (``WebhookRetryPolicy``)
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        clock: Clock = monotonic,
        sleep: Sleep = asyncio.sleep,
        metrics: DispatchMetrics | None = None,
        on_error: ErrorSink | None = None,
        classify: Classifier | None = None,
    ):
        self._config = config or EngineConfig()
        self._clock = clock
        self._metrics = metrics or DispatchMetrics()

        self._cooldown = CooldownCache.from_config(self._config.cooldown, clock=clock)
        self._breakers = CircuitBreakerRegistry(self._config.circuit_breaker, clock=clock)
        self._retry = RetryExecutor.from_config(
            self._config.retry,
            classify=classify or WebhookRetryPolicy(),
            sleep=sleep,
            on_retry=self._on_retry,
        )

        self._limiter: KeyedRateLimiter | None = None
        if self._config.rate_limit is not None:
            self._limiter = KeyedRateLimiter.from_config(self._config.rate_limit, clock=clock)
        self._runner = FireAndForgetRunner(
            on_error=on_error,
            limiter=self._limiter,
            metrics=self._metrics,
            clock=clock,
        )

        self._destinations: dict[str, Destination] = {}
        self._aggregators: dict[str, BatchAggregator[NotificationEvent]] = {}
        self._closed = False
        self._shutdown_task: asyncio.Task[bool] | None = None

    # ── configuration ────────────────────────────────────────────────────

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def destinations(self) -> dict[str, Destination]:
        """Registered destinations by key (a copy)."""
        return dict(self._destinations)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def runner(self) -> FireAndForgetRunner:
        return self._runner

    @property
    def cooldown(self) -> CooldownCache:
        return self._cooldown

    def add_destination(self, destination: Destination) -> None:
        """Register ``destination``, replacing any with the same key.

        A replaced destination's pending batch is flushed to its old notifier;
        events accepted afterwards go to the new one.
        """
        previous = self._aggregators.pop(destination.key, None)
        if previous is not None:
            previous.close()
        self._destinations[destination.key] = destination
        logger.info(
            "dispatch.destination_added",
            destination=destination.key,
            batch=destination.batch,
        )

    def remove_destination(self, key: str) -> bool:
        """Unregister ``key``; its pending batch is flushed in the background."""
        destination = self._destinations.pop(key, None)
        if destination is None:
            return False

        aggregator = self._aggregators.pop(key, None)
        if aggregator is not None:
            aggregator.close()
        self._breakers.remove(key)
        logger.info("dispatch.destination_removed", destination=key)
        return True

    # ── dispatch ─────────────────────────────────────────────────────────

    def notify(self, event: NotificationEvent) -> int:
        """Dispatch ``event`` to every destination whose rule matches.

        Returns:
            Number of destinations the event was scheduled or batched for
        """
        if self._closed:
            logger.debug("dispatch.rejected", reason="shutdown", signature=event.signature)
            return 0

        scheduled = 0
        for destination in list(self._destinations.values()):
            if destination.rule.matches(event) and self.dispatch(event, destination.key):
                scheduled += 1
        return scheduled

    def dispatch(self, event: NotificationEvent, destination_key: str) -> bool:
        """Gate ``event`` for one destination and schedule its delivery.

        Never raises. Returns True if a delivery was launched or the event
        was buffered for a batch.
        """
        try:
            return self._dispatch(event, destination_key)
        except Exception as e:
            logger.error(
                "dispatch.internal_error",
                destination=destination_key,
                error=str(e),
                exc_info=e,
            )
            return False

    def _dispatch(self, event: NotificationEvent, key: str) -> bool:
        destination = self._destinations.get(key)
        if destination is None:
            logger.warning("dispatch.unknown_destination", destination=key)
            return False

        if self._closed:
            self._metrics.record_event(key, "rejected")
            return False

        if not self._cooldown.should_send(dedup_key(key, event)):
            self._metrics.record_event(key, "suppressed")
            return False

        if destination.batch:
            # Batched events are rate limited on acceptance, never at flush
            if self._limiter is not None and not self._limiter.acquire(key):
                self._metrics.record_event(key, "dropped")
                logger.warning(
                    "dispatch.rate_limited",
                    destination=key,
                    retry_in=round(self._limiter.get_wait_time(key), 3),
                )
                return False
            added = self._aggregator_for(destination).add(event)
            self._metrics.record_event(key, "batched" if added else "rejected")
            return added

        task = self._runner.launch(
            self._task(destination, (event,)).run,
            name=key,
            key=key,
        )
        self._metrics.record_event(key, "scheduled" if task is not None else "dropped")
        return task is not None

    def _task(
        self,
        destination: Destination,
        events: Sequence[NotificationEvent],
        batched: bool = False,
    ) -> DispatchTask:
        return DispatchTask(
            destination=destination,
            events=events,
            breaker=self._breakers.get_or_create(destination.key),
            retry=self._retry,
            cooldown=self._cooldown,
            batched=batched,
            metrics=self._metrics,
            clock=self._clock,
        )

    def _aggregator_for(self, destination: Destination) -> BatchAggregator[NotificationEvent]:
        aggregator = self._aggregators.get(destination.key)
        if aggregator is None:

            async def deliver_batch(events: list[NotificationEvent]) -> None:
                await self._task(destination, events, batched=True).run()

            aggregator = BatchAggregator.from_config(
                deliver_batch,
                self._config.batch,
                runner=self._runner,
                name=destination.key,
            )
            self._aggregators[destination.key] = aggregator
        return aggregator

    def _on_retry(self, attempt: RetryAttempt) -> None:
        self._metrics.record_retry(attempt.operation)

    # ── inspection ───────────────────────────────────────────────────────

    def breaker_state(self, key: str) -> CircuitBreakerState | None:
        """Snapshot of ``key``'s breaker, or None if it was never used."""
        breaker = self._breakers.get(key)
        return breaker.snapshot() if breaker else None

    def reset_breaker(self, key: str) -> bool:
        breaker = self._breakers.get(key)
        if breaker is None:
            return False
        breaker.reset()
        self._metrics.record_circuit_state(key, breaker.state.value)
        return True

    def pending(self, key: str) -> int:
        """Events buffered for ``key``'s next batch."""
        aggregator = self._aggregators.get(key)
        return aggregator.pending if aggregator else 0

    def metrics(self) -> dict[str, Any]:
        """Point-in-time view of the engine."""
        return {
            "tasks": self._runner.metrics(),
            "in_flight": self._runner.in_flight,
            "breakers": {
                name: state.state.value for name, state in self._breakers.states().items()
            },
            "cooldown_entries": self._cooldown.size,
            "pending_batches": {
                name: aggregator.pending for name, aggregator in self._aggregators.items()
            },
        }

    def export_prometheus(self) -> str:
        return self._metrics.registry.export_prometheus()

    # ── lifecycle ────────────────────────────────────────────────────────

    async def shutdown(self, timeout: float | None = None) -> bool:
        """Stop accepting events, flush batches and drain deliveries.

        Deliveries still running after ``timeout`` seconds (default:
        ``config.shutdown_timeout``) are cancelled. Safe to call repeatedly
        and concurrently: later calls await the first call's result.

        Returns:
            True if every delivery finished on its own
        """
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.ensure_future(self._shutdown(timeout))
        return await asyncio.shield(self._shutdown_task)

    async def _shutdown(self, timeout: float | None) -> bool:
        self._closed = True
        limit = self._config.shutdown_timeout if timeout is None else timeout
        logger.info(
            "dispatch.shutting_down",
            in_flight=self._runner.in_flight,
            pending_batches=sum(a.pending for a in self._aggregators.values()),
            timeout=limit,
        )

        for aggregator in self._aggregators.values():
            aggregator.close()

        drained = await self._runner.shutdown(limit)

        self._aggregators.clear()
        self._cooldown.clear()
        self._breakers.clear()
        logger.info("dispatch.shutdown_complete", drained=drained)
        return drained

    async def __aenter__(self) -> DispatchEngine:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.shutdown()
