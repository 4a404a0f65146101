"""
ASGI middleware that counts HTTP requests in Prometheus.

Usage::

    from intake_common.observability import MetricsMiddleware, create_counter

    HTTP_REQUESTS = create_counter(
        "http_requests_total", "Total HTTP requests", ["method", "path", "status"]
    )

    app.add_middleware(MetricsMiddleware, counter=HTTP_REQUESTS,
                       ignored_paths={"/metrics"})

The status is taken from the response start message. A request whose
handler raises before a response starts is counted as 500.
"""

from typing import Iterable, Optional

from prometheus_client import Counter
from starlette.types import ASGIApp, Message, Receive, Scope, Send


class MetricsMiddleware:
    def __init__(self, app: ASGIApp, counter: Counter, ignored_paths: Optional[Iterable[str]] = None):
        self.app = app
        self.counter = counter
        self.ignored_paths = frozenset(ignored_paths or ())

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] in self.ignored_paths:
            await self.app(scope, receive, send)
            return

        status = 500

        async def send_with_status(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_with_status)
        finally:
            self.counter.labels(method=scope["method"], path=scope["path"], status=status).inc()
