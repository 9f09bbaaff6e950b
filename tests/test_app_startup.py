from __future__ import annotations

from fastapi.testclient import TestClient

from prombundle.common.config import Settings, get_settings
from prombundle.main import create_app


def test_create_app_serves_metrics_and_health():
    app = create_app(Settings())
    client = TestClient(app)

    assert client.get("/health").json() == {"status": "ok"}

    m = client.get("/metrics")
    assert m.status_code == 200
    assert "up 1.0" in m.text
    assert 'http_request_detail_duration_count{method="GET",route="/health",status_code="200"} 1.0' in m.text
    app.state.metrics_bundle.registry.reset()


def test_create_app_reads_settings_from_environment(monkeypatch):
    monkeypatch.setenv("METRICS_WHITELIST", "/^http_request_seconds$/")
    get_settings.cache_clear()  # type: ignore[attr-defined]

    app = create_app()
    bundle = app.state.metrics_bundle

    assert list(bundle.metrics) == ["http_request_seconds"]
    bundle.registry.reset()


def test_create_app_twice_uses_separate_registries():
    first = create_app(Settings())
    second = create_app(Settings())

    assert first.state.metrics_bundle.registry is not second.state.metrics_bundle.registry
    first.state.metrics_bundle.registry.reset()
    second.state.metrics_bundle.registry.reset()


def test_metrics_disabled(monkeypatch):
    monkeypatch.setenv("ENABLE_METRICS", "false")
    get_settings.cache_clear()  # type: ignore[attr-defined]

    app = create_app()
    client = TestClient(app)

    assert not hasattr(app.state, "metrics_bundle")
    assert client.get("/metrics").status_code == 404
    assert client.get("/health").status_code == 200
