"""Tests for DispatchTask and Destination."""

import pytest

from hookrelay.core.errors import CircuitOpenError, RetriesExhaustedError, TransientDeliveryError
from hookrelay.core.models import NotificationEvent
from hookrelay.dispatch import Destination, DispatchTask, render_event, render_events
from hookrelay.execution.circuit_breaker import CircuitBreaker
from hookrelay.execution.cooldown import CooldownCache
from hookrelay.execution.retry import ExponentialBackoff, RetryExecutor
from hookrelay.observability.metrics import DispatchMetrics


def make_task(destination, events, clock, sleep, *, batched=False, threshold=5, max_retries=0, metrics=None):
    return DispatchTask(
        destination=destination,
        events=events,
        breaker=CircuitBreaker(destination.key, failure_threshold=threshold, clock=clock),
        retry=RetryExecutor(ExponentialBackoff(max_retries=max_retries), sleep=sleep),
        cooldown=CooldownCache(60.0, clock=clock),
        batched=batched,
        metrics=metrics,
        clock=clock,
    )


class TestDestination:
    """Tests for Destination."""

    def test_empty_key_rejected(self, scripted_notifier):
        with pytest.raises(ValueError):
            Destination("", scripted_notifier())

    def test_for_notifier_uses_notifier_key(self, scripted_notifier):
        destination = Destination.for_notifier(scripted_notifier(key="discord:9"), batch=True)
        assert destination.key == "discord:9"
        assert destination.batch is True

    def test_default_renderers(self):
        event = NotificationEvent("post", "https://x/a", 502, error="bad gateway")
        assert render_event(event)["method"] == "POST"
        batch = render_events([event, event])
        assert batch["count"] == 2
        assert batch["events"][0]["error"] == "bad gateway"


class TestDispatchTask:
    """Tests for one delivery through breaker and retry."""

    def test_requires_events(self, scripted_notifier, clock, sleep):
        destination = Destination("d", scripted_notifier())
        with pytest.raises(ValueError):
            make_task(destination, [], clock, sleep)

    def test_dedup_keys_unique_in_order(self, scripted_notifier, clock, sleep):
        a = NotificationEvent("GET", "https://x/a", 500)
        b = NotificationEvent("GET", "https://x/b", 500)
        task = make_task(Destination("d", scripted_notifier()), [a, b, a], clock, sleep, batched=True)
        assert task.dedup_keys == ("d|GET https://x/a", "d|GET https://x/b")

    @pytest.mark.asyncio
    async def test_success_marks_every_key_sent(self, scripted_notifier, clock, sleep):
        a = NotificationEvent("GET", "https://x/a", 500)
        b = NotificationEvent("GET", "https://x/b", 500)
        notifier = scripted_notifier()
        metrics = DispatchMetrics()
        task = make_task(Destination("d", notifier), [a, b], clock, sleep, batched=True, metrics=metrics)

        await task.run()

        assert notifier.payloads[0]["count"] == 2
        assert not task.cooldown.should_send("d|GET https://x/a")
        assert not task.cooldown.should_send("d|GET https://x/b")
        assert metrics.deliveries.labels(destination="d", outcome="success").value == 1

    @pytest.mark.asyncio
    async def test_failure_raises_and_leaves_cooldown_untouched(self, scripted_notifier, clock, sleep):
        notifier = scripted_notifier([TransientDeliveryError("503")])
        event = NotificationEvent("GET", "https://x/a", 500)
        task = make_task(Destination("d", notifier), [event], clock, sleep)

        with pytest.raises(RetriesExhaustedError):
            await task.run()
        assert task.cooldown.size == 0
        assert task.breaker.consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_open_circuit_skips_notifier(self, scripted_notifier, clock, sleep):
        notifier = scripted_notifier()
        metrics = DispatchMetrics()
        task = make_task(
            Destination("d", notifier),
            [NotificationEvent("GET", "https://x/a", 500)],
            clock,
            sleep,
            metrics=metrics,
        )
        task.breaker.force_open()

        with pytest.raises(CircuitOpenError):
            await task.run()
        assert notifier.calls == 0
        assert metrics.deliveries.labels(destination="d", outcome="circuit_open").value == 1
        assert metrics.circuit_state.labels(destination="d").value == 1

    @pytest.mark.asyncio
    async def test_destination_classifier_overrides_default(self, scripted_notifier, clock, sleep):
        notifier = scripted_notifier([TransientDeliveryError("503")])
        destination = Destination("d", notifier, classify=lambda error: False)
        task = make_task(destination, [NotificationEvent("GET", "https://x", 500)], clock, sleep, max_retries=3)

        with pytest.raises(TransientDeliveryError):
            await task.run()
        assert notifier.calls == 1
