from __future__ import annotations

import pytest

from prombundle.common.config import get_settings
from prombundle.infra.observability.registry import MetricRegistry

METRICS_ENV_VARS = (
    "ENABLE_METRICS",
    "METRICS_WHITELIST",
    "METRICS_BLACKLIST",
    "METRICS_ROUTES_TO_DETAIL",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_metrics_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    for name in METRICS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # 避免读取仓库根目录下的 .env
    monkeypatch.setattr("prombundle.common.config.ENV_FILE", tmp_path / ".env")
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture
def registry():
    metric_registry = MetricRegistry()
    yield metric_registry
    metric_registry.reset()
