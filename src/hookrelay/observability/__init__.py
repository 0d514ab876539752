"""hookrelay observability - in-process delivery metrics."""

from hookrelay.observability.metrics import (
    Counter,
    DispatchMetrics,
    Gauge,
    Histogram,
    MetricsRegistry,
)

__all__ = [
    "Counter",
    "DispatchMetrics",
    "Gauge",
    "Histogram",
    "MetricsRegistry",
]
