from __future__ import annotations

"""Prometheus metrics for the Nexus FastAPI backend.

Request latency per method/path/status plus a counter of processed turns.
"""

import time
from typing import Awaitable, Callable

from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.responses import Response

REQUEST_LATENCY = Histogram(
    "nexus_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

TURNS = Counter(
    "nexus_turns_total",
    "Generation turns by outcome",
    labelnames=("outcome",),
)


def sanitize_path(path: str) -> str:
    """Keep the first two static segments (``/api/process``) as the label."""
    if not path:
        return "/"
    segs = [s for s in path.split("?")[0].split("/") if s]
    if not segs:
        return "/"
    return "/" + "/".join(segs[:2])


def record_turn(outcome: str) -> None:
    TURNS.labels(outcome=outcome).inc()


def metrics_middleware_factory() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.url.path.startswith("/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        REQUEST_LATENCY.labels(
            method=request.method,
            path=sanitize_path(request.url.path),
            status=str(response.status_code),
        ).observe(elapsed)
        return response

    return middleware
