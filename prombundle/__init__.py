from prombundle.infra.observability import (
    BundleOptions,
    ConfigurationError,
    DuplicateMetricError,
    MetricRegistry,
    PrometheusBundle,
    prometheus_bundle,
)

__all__ = [
    "BundleOptions",
    "ConfigurationError",
    "DuplicateMetricError",
    "MetricRegistry",
    "PrometheusBundle",
    "prometheus_bundle",
]
