"""Response completion notification.

The middleware subscribes to a ``ResponseCompletion`` per request and fires it
once the last body chunk has been handed to the server. Subscribers run at
most once, whatever the server's concurrency model is.
"""

from __future__ import annotations

from typing import Callable

CompletionCallback = Callable[[int, "str | None"], None]


class ResponseCompletion:
    __slots__ = ("_callbacks", "_fired")

    def __init__(self) -> None:
        self._callbacks: list[CompletionCallback] = []
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def subscribe(self, callback: CompletionCallback) -> None:
        self._callbacks.append(callback)

    def fire(self, status_code: int, route: str | None) -> None:
        if self._fired:
            return
        self._fired = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(status_code, route)


def resolve_route_path(scope: dict) -> str | None:
    """Route template matched by the router, e.g. ``/api/v1/nodes/{id}``."""
    route = scope.get("route")
    if route is not None and hasattr(route, "path"):
        return route.path
    return None
