import logging

import uvicorn
from fastapi import FastAPI

from prombundle.common.config import Settings, get_settings
from prombundle.common.logging import setup_logging
from prombundle.infra.observability import BundleOptions, MetricRegistry, prometheus_bundle


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)
    app = FastAPI(
        title="prombundle",
        version="0.1.0",
        description="HTTP latency and liveness metrics for ASGI services",
    )

    # Metrics
    if settings.ENABLE_METRICS:
        bundle = prometheus_bundle(
            BundleOptions.from_settings(settings), registry=MetricRegistry()
        )
        app.add_middleware(bundle)
        app.state.metrics_bundle = bundle
    else:
        logging.getLogger("prombundle.startup").info(
            "metrics disabled, /metrics is not served [event=metrics_disabled]"
        )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("prombundle.main:app", host="0.0.0.0", port=8000, reload=True)
