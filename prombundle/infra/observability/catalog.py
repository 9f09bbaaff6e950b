from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Union

from prombundle.infra.observability.registry import GaugeHandle, HistogramHandle, MetricRegistry

UP = "up"
MEMORY_HEAP_TOTAL = "nodejs_memory_heap_total_bytes"
MEMORY_HEAP_USED = "nodejs_memory_heap_used_bytes"
HTTP_REQUEST_SECONDS = "http_request_seconds"
HTTP_REQUEST_DETAIL_DURATION = "http_request_detail_duration"
HTTP_REQUEST_LONG_DURATION = "http_request_long_duration"

LATENCY_BUCKETS: tuple[float, ...] = (0.003, 0.03, 0.1, 0.3, 1.5, 10)
LONG_LATENCY_BUCKETS: tuple[float, ...] = (0.3, 1.5, 3, 5, 10)

MetricHandle = Union[GaugeHandle, HistogramHandle]
MetricTemplate = Callable[[], MetricHandle]


class MetricKind(str, Enum):
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    kind: MetricKind
    documentation: str
    buckets: tuple[float, ...] = ()
    label_names: tuple[str, ...] = ()

    def build(self, registry: MetricRegistry) -> MetricHandle:
        if self.kind is MetricKind.GAUGE:
            return registry.new_gauge(self.name, self.documentation)
        return registry.new_histogram(
            self.name,
            self.documentation,
            buckets=self.buckets,
            label_names=self.label_names,
        )


# 名称保持不变，已有的看板与告警规则直接依赖这些指标名
METRIC_DEFINITIONS: tuple[MetricDefinition, ...] = (
    MetricDefinition(UP, MetricKind.GAUGE, "1 = up, 0 = not up"),
    MetricDefinition(
        MEMORY_HEAP_TOTAL,
        MetricKind.GAUGE,
        "virtual memory size of the process (psutil memory_info().vms)",
    ),
    MetricDefinition(
        MEMORY_HEAP_USED,
        MetricKind.GAUGE,
        "resident memory size of the process (psutil memory_info().rss)",
    ),
    MetricDefinition(
        HTTP_REQUEST_SECONDS,
        MetricKind.HISTOGRAM,
        "number of http responses labeled with status code",
        buckets=LATENCY_BUCKETS,
        label_names=("status_code",),
    ),
    MetricDefinition(
        HTTP_REQUEST_DETAIL_DURATION,
        MetricKind.HISTOGRAM,
        "Duration of HTTP requests(Detailed)",
        buckets=LATENCY_BUCKETS,
        label_names=("method", "route", "status_code"),
    ),
    MetricDefinition(
        HTTP_REQUEST_LONG_DURATION,
        MetricKind.HISTOGRAM,
        "Long Duration of HTTP requests(Detailed)",
        buckets=LONG_LATENCY_BUCKETS,
        label_names=("method", "url", "status_code"),
    ),
)


def build_metric_templates(registry: MetricRegistry) -> dict[str, MetricTemplate]:
    """Map every catalog name to a constructor bound to ``registry``.

    Nothing is registered until a constructor is called.
    """

    def template(definition: MetricDefinition) -> MetricTemplate:
        return lambda: definition.build(registry)

    return {definition.name: template(definition) for definition in METRIC_DEFINITIONS}
