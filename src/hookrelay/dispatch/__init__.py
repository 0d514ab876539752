"""hookrelay dispatch - destinations, delivery tasks and the engine."""

from hookrelay.dispatch.destination import Destination, render_event, render_events
from hookrelay.dispatch.engine import DispatchEngine
from hookrelay.dispatch.task import DispatchTask

__all__ = [
    "Destination",
    "DispatchEngine",
    "DispatchTask",
    "render_event",
    "render_events",
]
