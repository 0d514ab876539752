"""Destination: one endpoint the engine can deliver to."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from hookrelay.core.models import InspectionRule, NotificationEvent
from hookrelay.execution.retry import Classifier
from hookrelay.notifiers.protocol import KeyedNotifier, Notifier

Renderer = Callable[[NotificationEvent], Any]
BatchRenderer = Callable[[Sequence[NotificationEvent]], Any]


def render_event(event: NotificationEvent) -> dict[str, Any]:
    """Default single-event payload."""
    return event.to_dict()


def render_events(events: Sequence[NotificationEvent]) -> dict[str, Any]:
    """Default batch payload."""
    return {
        "count": len(events),
        "events": [event.to_dict() for event in events],
    }


@dataclass
class Destination:
    """A notifier plus the policy for what it receives.

    Attributes:
        key: Destination key; all per-destination state is keyed by it
        notifier: Transport performing the delivery
        rule: Which events this destination wants
        render: Payload for one event
        render_batch: Payload for a flushed batch
        batch: Aggregate events and deliver them in batches
        classify: Retry classifier overriding the engine default
    """

    key: str
    notifier: Notifier
    rule: InspectionRule = field(default_factory=InspectionRule)
    render: Renderer = render_event
    render_batch: BatchRenderer = render_events
    batch: bool = False
    classify: Classifier | None = None

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("Destination key must not be empty")

    @classmethod
    def for_notifier(cls, notifier: KeyedNotifier, **kwargs: Any) -> Destination:
        """Build a destination keyed by the notifier's own destination key."""
        return cls(key=notifier.destination_key, notifier=notifier, **kwargs)
