"""
In-process metrics for the dispatch path.

Prometheus-style counters, gauges and histograms with label support. A
``MetricsRegistry`` is owned by whoever creates it (normally one per
``DispatchEngine``); there is no process-wide default registry, so two
engines in one process never mix their numbers.

Example:
    >>> registry = MetricsRegistry()
    >>> sent = registry.counter("hookrelay_deliveries_total", "Deliveries", ["destination", "outcome"])
    >>> sent.labels(destination="discord", outcome="success").inc()
    >>> print(registry.export_prometheus())
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Labels:
    """Immutable label set, hashable so it can key a metric's values."""

    values: tuple[tuple[str, str], ...]

    @classmethod
    def from_dict(cls, labels: dict[str, Any]) -> Labels:
        return cls(tuple(sorted((k, str(v)) for k, v in labels.items())))

    def to_dict(self) -> dict[str, str]:
        return dict(self.values)

    def render(self, extra: dict[str, str] | None = None) -> str:
        """Prometheus label block, ``{a="1",b="2"}`` or empty."""
        pairs = list(self.values) + sorted((extra or {}).items())
        if not pairs:
            return ""
        return "{" + ",".join(f'{k}="{v}"' for k, v in pairs) + "}"


class Metric:
    """Base class for metrics."""

    type_name = "untyped"

    def __init__(self, name: str, description: str = "", labels: list[str] | None = None):
        self.name = name
        self.description = description
        self.label_names = tuple(labels or ())

    def _labels(self, kwargs: dict[str, Any]) -> Labels:
        unknown = set(kwargs) - set(self.label_names)
        if unknown:
            raise ValueError(f"Unknown labels for {self.name}: {sorted(unknown)}")
        return Labels.from_dict(kwargs)

    def collect(self) -> list[dict[str, Any]]:
        raise NotImplementedError


class Counter(Metric):
    """Monotonically increasing value (deliveries, drops, retries)."""

    type_name = "counter"

    def __init__(self, name: str, description: str = "", labels: list[str] | None = None):
        super().__init__(name, description, labels)
        self._values: dict[Labels, float] = {}

    def labels(self, **kwargs: Any) -> CounterChild:
        return CounterChild(self, self._labels(kwargs))

    def inc(self, value: float = 1.0) -> None:
        self.labels().inc(value)

    def collect(self) -> list[dict[str, Any]]:
        return [
            {"name": self.name, "type": self.type_name, "labels": labels.to_dict(), "value": value}
            for labels, value in self._values.items()
        ]


class CounterChild:
    """Counter with fixed labels."""

    def __init__(self, counter: Counter, labels: Labels):
        self._counter = counter
        self._labels = labels

    def inc(self, value: float = 1.0) -> None:
        if value < 0:
            raise ValueError("Counter can only increase")
        values = self._counter._values
        values[self._labels] = values.get(self._labels, 0.0) + value

    @property
    def value(self) -> float:
        return self._counter._values.get(self._labels, 0.0)


class Gauge(Metric):
    """A value that can go up or down (in-flight tasks, breaker state)."""

    type_name = "gauge"

    def __init__(self, name: str, description: str = "", labels: list[str] | None = None):
        super().__init__(name, description, labels)
        self._values: dict[Labels, float] = {}

    def labels(self, **kwargs: Any) -> GaugeChild:
        return GaugeChild(self, self._labels(kwargs))

    def set(self, value: float) -> None:
        self.labels().set(value)

    def inc(self, value: float = 1.0) -> None:
        self.labels().inc(value)

    def dec(self, value: float = 1.0) -> None:
        self.labels().dec(value)

    def collect(self) -> list[dict[str, Any]]:
        return [
            {"name": self.name, "type": self.type_name, "labels": labels.to_dict(), "value": value}
            for labels, value in self._values.items()
        ]


class GaugeChild:
    """Gauge with fixed labels."""

    def __init__(self, gauge: Gauge, labels: Labels):
        self._gauge = gauge
        self._labels = labels

    def set(self, value: float) -> None:
        self._gauge._values[self._labels] = value

    def inc(self, value: float = 1.0) -> None:
        self.set(self.value + value)

    def dec(self, value: float = 1.0) -> None:
        self.inc(-value)

    @property
    def value(self) -> float:
        return self._gauge._values.get(self._labels, 0.0)


class Histogram(Metric):
    """A distribution of observations (delivery latency)."""

    type_name = "histogram"

    DEFAULT_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, float("inf"))

    def __init__(
        self,
        name: str,
        description: str = "",
        labels: list[str] | None = None,
        buckets: tuple[float, ...] | None = None,
    ):
        super().__init__(name, description, labels)
        self._buckets = tuple(sorted(buckets or self.DEFAULT_BUCKETS))
        if self._buckets[-1] != float("inf"):
            self._buckets += (float("inf"),)
        self._data: dict[Labels, dict[str, Any]] = {}

    def labels(self, **kwargs: Any) -> HistogramChild:
        return HistogramChild(self, self._labels(kwargs))

    def observe(self, value: float) -> None:
        self.labels().observe(value)

    def _empty(self) -> dict[str, Any]:
        return {"buckets": dict.fromkeys(self._buckets, 0), "sum": 0.0, "count": 0}

    def _observe(self, labels: Labels, value: float) -> None:
        data = self._data.setdefault(labels, self._empty())
        data["sum"] += value
        data["count"] += 1
        for bucket in self._buckets:
            if value <= bucket:
                data["buckets"][bucket] += 1

    def collect(self) -> list[dict[str, Any]]:
        return [
            {
                "name": self.name,
                "type": self.type_name,
                "labels": labels.to_dict(),
                "buckets": dict(data["buckets"]),
                "sum": data["sum"],
                "count": data["count"],
            }
            for labels, data in self._data.items()
        ]


class HistogramChild:
    """Histogram with fixed labels."""

    def __init__(self, histogram: Histogram, labels: Labels):
        self._histogram = histogram
        self._labels = labels

    def observe(self, value: float) -> None:
        self._histogram._observe(self._labels, value)

    def time(self) -> Timer:
        """Context manager recording the duration of a block."""
        return Timer(self)

    @property
    def data(self) -> dict[str, Any]:
        return self._histogram._data.get(self._labels, self._histogram._empty())


class Timer:
    """Context manager for timing operations."""

    def __init__(self, histogram_child: HistogramChild):
        self._histogram_child = histogram_child
        self._start = 0.0

    def __enter__(self) -> Timer:
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self._histogram_child.observe(time.perf_counter() - self._start)


class MetricsRegistry:
    """Named metrics for collection and export."""

    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}

    def _get_or_create(self, cls: type[Metric], name: str, *args: Any) -> Any:
        metric = self._metrics.get(name)
        if metric is None:
            metric = cls(name, *args)
            self._metrics[name] = metric
        elif not isinstance(metric, cls):
            raise ValueError(f"Metric {name!r} already registered as {metric.type_name}")
        return metric

    def counter(self, name: str, description: str = "", labels: list[str] | None = None) -> Counter:
        """Get or create a counter."""
        return self._get_or_create(Counter, name, description, labels)

    def gauge(self, name: str, description: str = "", labels: list[str] | None = None) -> Gauge:
        """Get or create a gauge."""
        return self._get_or_create(Gauge, name, description, labels)

    def histogram(
        self,
        name: str,
        description: str = "",
        labels: list[str] | None = None,
        buckets: tuple[float, ...] | None = None,
    ) -> Histogram:
        """Get or create a histogram."""
        return self._get_or_create(Histogram, name, description, labels, buckets)

    def get(self, name: str) -> Metric | None:
        return self._metrics.get(name)

    def collect(self) -> list[dict[str, Any]]:
        """Collect every sample of every metric."""
        results: list[dict[str, Any]] = []
        for metric in self._metrics.values():
            results.extend(metric.collect())
        return results

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        lines: list[str] = []

        for metric in self._metrics.values():
            if metric.description:
                lines.append(f"# HELP {metric.name} {metric.description}")
            lines.append(f"# TYPE {metric.name} {metric.type_name}")

            for sample in metric.collect():
                labels = Labels.from_dict(sample["labels"])
                if metric.type_name == "histogram":
                    for bucket, count in sample["buckets"].items():
                        le = "+Inf" if bucket == float("inf") else str(bucket)
                        lines.append(f"{metric.name}_bucket{labels.render({'le': le})} {count}")
                    lines.append(f"{metric.name}_sum{labels.render()} {sample['sum']}")
                    lines.append(f"{metric.name}_count{labels.render()} {sample['count']}")
                else:
                    lines.append(f"{metric.name}{labels.render()} {sample['value']}")

        return "\n".join(lines)


# Gauge encoding of CircuitState values
CIRCUIT_STATE_VALUES = {"closed": 0, "open": 1, "half_open": 2}


class DispatchMetrics:
    """Pre-defined metrics for notification dispatch."""

    def __init__(self, registry: MetricsRegistry | None = None):
        reg = registry or MetricsRegistry()
        self.registry = reg

        self.events = reg.counter(
            "hookrelay_events_total",
            "Notification events seen per destination, by gate outcome",
            ["destination", "outcome"],
        )
        self.deliveries = reg.counter(
            "hookrelay_deliveries_total",
            "Delivery attempts that reached a verdict",
            ["destination", "outcome"],
        )
        self.retries = reg.counter(
            "hookrelay_retries_total",
            "Retries scheduled after a transient failure",
            ["destination"],
        )
        self.delivery_duration = reg.histogram(
            "hookrelay_delivery_duration_seconds",
            "Wall time of one delivery including retries",
            ["destination"],
        )
        self.tasks = reg.counter(
            "hookrelay_tasks_total",
            "Background tasks by lifecycle outcome",
            ["name", "outcome"],
        )
        self.in_flight = reg.gauge(
            "hookrelay_tasks_in_flight",
            "Background tasks currently running",
        )
        self.circuit_state = reg.gauge(
            "hookrelay_circuit_state",
            "Breaker state per destination (0=closed, 1=open, 2=half_open)",
            ["destination"],
        )

    def record_event(self, destination: str, outcome: str) -> None:
        """Record a gate decision (scheduled, batched, suppressed, rejected)."""
        self.events.labels(destination=destination, outcome=outcome).inc()

    def record_delivery(self, destination: str, outcome: str, duration: float | None = None) -> None:
        """Record the verdict of one delivery."""
        self.deliveries.labels(destination=destination, outcome=outcome).inc()
        if duration is not None:
            self.delivery_duration.labels(destination=destination).observe(duration)

    def record_retry(self, destination: str) -> None:
        self.retries.labels(destination=destination).inc()

    def record_circuit_state(self, destination: str, state: str) -> None:
        self.circuit_state.labels(destination=destination).set(CIRCUIT_STATE_VALUES.get(state, -1))

    def record_task_started(self, name: str) -> None:
        self.tasks.labels(name=name, outcome="launched").inc()
        self.in_flight.inc()

    def record_task_finished(self, name: str, outcome: str) -> None:
        self.tasks.labels(name=name, outcome=outcome).inc()
        self.in_flight.dec()

    def record_task_dropped(self, name: str) -> None:
        self.tasks.labels(name=name, outcome="dropped").inc()
