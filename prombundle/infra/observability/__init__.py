"""Prometheus request metrics for ASGI applications.

``prometheus_bundle()`` filters the metric catalog once, registers the
surviving metrics in an owned registry and returns a bundle that
``app.add_middleware`` turns into the timing middleware.
"""

from .catalog import METRIC_DEFINITIONS, MetricDefinition, MetricKind, build_metric_templates
from .errors import ConfigurationError, DuplicateMetricError, MetricsError
from .filters import ExactMatch, FilterConfig, PatternMatch, parse_pattern, select_metric_names
from .lifecycle import ResponseCompletion
from .middleware import (
    METRICS_PATH,
    BundleOptions,
    PrometheusBundle,
    PrometheusMiddleware,
    prometheus_bundle,
)
from .registry import GaugeHandle, HistogramHandle, MetricRegistry, Timer

__all__ = [
    "METRICS_PATH",
    "METRIC_DEFINITIONS",
    "BundleOptions",
    "ConfigurationError",
    "DuplicateMetricError",
    "ExactMatch",
    "FilterConfig",
    "GaugeHandle",
    "HistogramHandle",
    "MetricDefinition",
    "MetricKind",
    "MetricRegistry",
    "MetricsError",
    "PatternMatch",
    "PrometheusBundle",
    "PrometheusMiddleware",
    "ResponseCompletion",
    "Timer",
    "build_metric_templates",
    "parse_pattern",
    "prometheus_bundle",
    "select_metric_names",
]
