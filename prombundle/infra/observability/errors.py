from __future__ import annotations


class MetricsError(Exception):
    """Base class for metrics bundle errors."""


class ConfigurationError(MetricsError, ValueError):
    """Raised when the bundle options cannot be honoured."""


class DuplicateMetricError(MetricsError, ValueError):
    """Raised when a metric name is registered twice in the same registry."""

    def __init__(self, name: str):
        super().__init__(f"metric {name!r} is already registered")
        self.name = name
