from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterator, Mapping

from prometheus_client import CollectorRegistry
from starlette.responses import HTMLResponse, Response

from prombundle.infra.observability.catalog import (
    HTTP_REQUEST_DETAIL_DURATION,
    HTTP_REQUEST_LONG_DURATION,
    HTTP_REQUEST_SECONDS,
    MEMORY_HEAP_TOTAL,
    MEMORY_HEAP_USED,
    UP,
    MetricHandle,
    MetricTemplate,
    build_metric_templates,
)
from prombundle.infra.observability.errors import ConfigurationError
from prombundle.infra.observability.filters import FilterConfig, select_metric_names
from prombundle.infra.observability.lifecycle import ResponseCompletion, resolve_route_path
from prombundle.infra.observability.process import read_memory_usage
from prombundle.infra.observability.registry import MetricRegistry, Timer

if TYPE_CHECKING:
    from prombundle.common.config import Settings

ASGIApp = Callable[[dict, Callable[..., Awaitable[Any]], Callable[..., Awaitable[Any]]], Awaitable[None]]

METRICS_PATH = "/metrics"

MISUSE_BODY = (
    "<h1>500 Error</h1>\n"
    "<p>Unexpected arguments to prometheus_bundle.\n"
    "<p>Did you just put prometheus_bundle into app.add_middleware "
    "without calling it as a function first?"
)

startup_logger = logging.getLogger("prombundle.startup")
http_logger = logging.getLogger("http")


@dataclass(frozen=True)
class BundleOptions:
    filter: FilterConfig = field(default_factory=FilterConfig)
    routes_to_detail: tuple[str, ...] | None = None

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "BundleOptions":
        unknown = set(options) - {"whitelist", "blacklist", "routes_to_detail"}
        if unknown:
            raise ConfigurationError(f"unknown metrics bundle options: {sorted(unknown)}")
        routes = options.get("routes_to_detail")
        if isinstance(routes, str):
            routes = [routes]
        return cls(
            filter=FilterConfig.parse(options.get("whitelist"), options.get("blacklist")),
            routes_to_detail=tuple(routes) if routes is not None else None,
        )

    @classmethod
    def from_settings(cls, settings: "Settings") -> "BundleOptions":
        return cls.from_mapping(
            {
                "whitelist": settings.METRICS_WHITELIST,
                "blacklist": settings.METRICS_BLACKLIST,
                "routes_to_detail": settings.METRICS_ROUTES_TO_DETAIL,
            }
        )


@dataclass
class RequestTimers:
    seconds: Timer | None = None
    detail: Timer | None = None
    long: Timer | None = None

    def started(self) -> Iterator[Timer]:
        for timer in (self.seconds, self.detail, self.long):
            if timer is not None:
                yield timer


def _raw_url(scope: dict) -> str:
    path = scope.get("path", "")
    query = scope.get("query_string", b"")
    if query:
        return f"{path}?{query.decode('latin-1')}"
    return path


class PrometheusBundle:
    """Active metrics for one app plus the per-request timing logic.

    ``app.add_middleware(bundle)`` installs it; ``metrics``,
    ``metric_templates`` and ``registry`` stay available for inspection.
    """

    def __init__(self, options: BundleOptions, registry: MetricRegistry):
        self.options = options
        self.registry = registry
        self.metric_templates: dict[str, MetricTemplate] = build_metric_templates(registry)
        names = select_metric_names(list(self.metric_templates), options.filter)
        self.metrics: dict[str, MetricHandle] = {
            name: self.metric_templates[name]() for name in names
        }
        if UP in self.metrics:
            self.metrics[UP].set(1)

    @property
    def prom_registry(self) -> CollectorRegistry:
        return self.registry.prom_registry

    def __call__(self, app: ASGIApp) -> "PrometheusMiddleware":
        return PrometheusMiddleware(app, self)

    def start_timers(self, scope: dict) -> RequestTimers:
        timers = RequestTimers()
        method = scope.get("method", "")
        raw_url = _raw_url(scope)
        if HTTP_REQUEST_SECONDS in self.metrics:
            timers.seconds = self.metrics[HTTP_REQUEST_SECONDS].start_timer({"status_code": 0})
        if HTTP_REQUEST_DETAIL_DURATION in self.metrics:
            # 路由尚未解析，先用原始 URL 占位
            timers.detail = self.metrics[HTTP_REQUEST_DETAIL_DURATION].start_timer(
                {"method": method, "route": raw_url, "status_code": 0}
            )
        if HTTP_REQUEST_LONG_DURATION in self.metrics:
            timers.long = self.metrics[HTTP_REQUEST_LONG_DURATION].start_timer(
                {"method": method, "url": raw_url, "status_code": 0}
            )
        return timers

    def is_detailed_route(self, route: str | None) -> bool:
        routes = self.options.routes_to_detail
        return routes is not None and route is not None and route in routes

    def finish(self, timers: RequestTimers, status_code: int, route: str | None) -> None:
        if not status_code:
            return
        for timer in timers.started():
            timer.labels["status_code"] = status_code
        if timers.detail is not None and route is not None:
            timers.detail.labels["route"] = route
        if timers.seconds is not None:
            timers.seconds()
        if timers.detail is not None:
            timers.detail()
        if timers.long is not None and self.is_detailed_route(route):
            timers.long()

    def sample_process_memory(self) -> None:
        total = self.metrics.get(MEMORY_HEAP_TOTAL)
        used = self.metrics.get(MEMORY_HEAP_USED)
        if total is None and used is None:
            return
        usage = read_memory_usage()
        if total is not None:
            total.set(usage.total_bytes)
        if used is not None:
            used.set(usage.used_bytes)

    def metrics_response(self) -> Response:
        self.sample_process_memory()
        return Response(content=self.registry.render(), media_type=self.registry.content_type)


class PrometheusMiddleware:
    """Times every HTTP request and serves ``GET /metrics``."""

    def __init__(self, app: ASGIApp, bundle: PrometheusBundle):
        self.app = app
        self.bundle = bundle

    async def __call__(self, scope: dict, receive, send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        bundle = self.bundle
        timers = bundle.start_timers(scope)

        if scope.get("path") == METRICS_PATH:
            # 抓取请求不计入自身的直方图，timers 直接丢弃
            await bundle.metrics_response()(scope, receive, send)
            return

        completion = ResponseCompletion()
        completion.subscribe(partial(bundle.finish, timers))
        status_code: int | None = None

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code

            if message["type"] == "http.response.start":
                status_code = message.get("status")

            await send(message)

            if (
                message["type"] == "http.response.body"
                and not message.get("more_body", False)
                and status_code
            ):
                completion.fire(status_code, resolve_route_path(scope))

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            # 响应头未发出时由外层 ServerErrorMiddleware 回 500，按 500 计入
            if status_code is None:
                completion.fire(500, resolve_route_path(scope))
            raise


async def _respond_misused(scope: dict, receive, send) -> None:
    http_logger.error(
        "metrics_bundle_misused path=%s hint=call prometheus_bundle() before installing it",
        scope.get("path"),
        extra={"extra": {"path": scope.get("path"), "scope_type": scope.get("type"), "status": 500}},
    )
    if scope.get("type") == "http":
        await HTMLResponse(MISUSE_BODY, status_code=500)(scope, receive, send)
    elif scope.get("type") == "websocket":
        await send({"type": "websocket.close", "code": 1011})


class _MisusedBundle:
    """Installed in place of a bundle when the factory itself was given an app."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: dict, receive, send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return
        await _respond_misused(scope, receive, send)


def _is_asgi_scope(value: Any) -> bool:
    return isinstance(value, dict) and "type" in value


def prometheus_bundle(
    options: BundleOptions | Mapping[str, Any] | None = None,
    receive: Callable[..., Awaitable[Any]] | None = None,
    send: Callable[..., Awaitable[Any]] | None = None,
    *,
    registry: MetricRegistry | None = None,
    app: ASGIApp | None = None,
):
    """Build a ``PrometheusBundle`` from ``options``.

    ``options`` is a ``BundleOptions`` or a mapping with ``whitelist``,
    ``blacklist`` and ``routes_to_detail`` keys.

    Installing the factory itself instead of its result is answered with a
    500 page per request: ``app.add_middleware(prometheus_bundle)`` hands it
    the downstream app (positionally or as ``app=``), mounting it as an
    endpoint hands it ``scope, receive, send``.
    """
    if app is not None:
        return _MisusedBundle(app)
    if callable(receive) and callable(send) and _is_asgi_scope(options):
        return _respond_misused(options, receive, send)
    if callable(options) and not isinstance(options, (BundleOptions, Mapping)):
        return _MisusedBundle(options)

    if options is None:
        options = BundleOptions()
    elif not isinstance(options, BundleOptions):
        try:
            options = BundleOptions.from_mapping(options)
        except ConfigurationError as exc:
            startup_logger.error("metrics bundle configuration rejected: %s [event=metrics_config_invalid]", exc)
            raise

    bundle = PrometheusBundle(options, registry if registry is not None else MetricRegistry())
    startup_logger.info(
        "metrics bundle ready [event=metrics_bundle_ready] (active=%s, routes_to_detail=%s)",
        ",".join(bundle.metrics) or "-",
        ",".join(options.routes_to_detail) if options.routes_to_detail is not None else "-",
    )
    return bundle
