"""Explicitly owned facade over a ``prometheus_client`` registry.

Every bundle gets its own ``MetricRegistry`` (and therefore its own
``CollectorRegistry`` unless one is passed in), so tests and multiple apps in
one process never trip over each other.
"""

from __future__ import annotations

from timeit import default_timer
from typing import Mapping, Sequence

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, Histogram, generate_latest

from prombundle.infra.observability.errors import DuplicateMetricError

LabelValue = str | int


class GaugeHandle:
    def __init__(self, gauge: Gauge, name: str, registry: CollectorRegistry):
        self._gauge = gauge
        self._registry = registry
        self.name = name

    def set(self, value: float) -> None:
        self._gauge.set(value)

    @property
    def value(self) -> float | None:
        return self._registry.get_sample_value(self.name)


class Timer:
    """A started histogram observation.

    Calling the timer records the elapsed time with the label values the
    ``labels`` mapping holds at that moment. Only the first call observes;
    a timer that is never called leaves the histogram untouched.
    """

    __slots__ = ("_histogram", "_label_names", "labels", "_start", "_elapsed")

    def __init__(self, histogram: Histogram, label_names: Sequence[str], labels: dict[str, LabelValue]):
        self._histogram = histogram
        self._label_names = label_names
        self.labels = labels
        self._start = default_timer()
        self._elapsed: float | None = None

    @property
    def finalized(self) -> bool:
        return self._elapsed is not None

    def __call__(self) -> float:
        if self._elapsed is not None:
            return self._elapsed
        elapsed = max(default_timer() - self._start, 0.0)
        values = {name: self.labels.get(name, "") for name in self._label_names}
        if values:
            self._histogram.labels(**values).observe(elapsed)
        else:
            self._histogram.observe(elapsed)
        self._elapsed = elapsed
        return elapsed


class HistogramHandle:
    def __init__(self, histogram: Histogram, name: str, label_names: Sequence[str]):
        self._histogram = histogram
        self._label_names = tuple(label_names)
        self.name = name

    @property
    def label_names(self) -> tuple[str, ...]:
        return self._label_names

    def start_timer(self, labels: Mapping[str, LabelValue] | None = None) -> Timer:
        return Timer(self._histogram, self._label_names, dict(labels or {}))


class MetricRegistry:
    """Creates gauges/histograms and renders them in the text exposition format."""

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: CollectorRegistry | None = None):
        self._registry = registry if registry is not None else CollectorRegistry(auto_describe=True)
        self._collectors: dict[str, Gauge | Histogram] = {}

    @property
    def prom_registry(self) -> CollectorRegistry:
        return self._registry

    @property
    def names(self) -> list[str]:
        return list(self._collectors)

    def _register(self, name: str, factory) -> Gauge | Histogram:
        if name in self._collectors:
            raise DuplicateMetricError(name)
        try:
            collector = factory()
        except ValueError as exc:
            # prometheus_client: "Duplicated timeseries in CollectorRegistry"
            if "Duplicated timeseries" in str(exc):
                raise DuplicateMetricError(name) from exc
            raise
        self._collectors[name] = collector
        return collector

    def new_gauge(self, name: str, documentation: str) -> GaugeHandle:
        gauge = self._register(
            name, lambda: Gauge(name, documentation, registry=self._registry)
        )
        return GaugeHandle(gauge, name, self._registry)

    def new_histogram(
        self,
        name: str,
        documentation: str,
        *,
        buckets: Sequence[float],
        label_names: Sequence[str] = (),
    ) -> HistogramHandle:
        histogram = self._register(
            name,
            lambda: Histogram(
                name,
                documentation,
                labelnames=tuple(label_names),
                buckets=tuple(buckets),
                registry=self._registry,
            ),
        )
        return HistogramHandle(histogram, name, label_names)

    def render(self) -> str:
        return generate_latest(self._registry).decode("utf-8")

    def sample_value(self, name: str, labels: Mapping[str, LabelValue] | None = None) -> float | None:
        normalized = {key: str(value) for key, value in (labels or {}).items()}
        return self._registry.get_sample_value(name, normalized)

    def reset(self) -> None:
        """Unregister every collector created through this facade."""
        for collector in self._collectors.values():
            try:
                self._registry.unregister(collector)
            except KeyError:
                pass
        self._collectors.clear()
