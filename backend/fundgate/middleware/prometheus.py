"""Request instrumentation for the ledger API.

Each request is counted and timed under a route template rather than its
raw path, so label values stay bounded no matter how many campaigns,
milestones or contributors exist.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from fundgate.core.metrics import (
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)

# Probes, scrapes and the long-lived event stream are not measured
_UNMEASURED = frozenset({"/api/health", "/metrics", "/api/v1/events/stream"})

# Collection name -> placeholder for the path segment that follows it
_PLACEHOLDERS = {
    "campaigns": "{id}",
    "milestones": "{index}",
    "contributions": "{contributor}",
}


def _normalise_path(path: str) -> str:
    """Map a concrete request path onto its route template.

    ``/api/v1/campaigns/12/milestones/3/release`` becomes
    ``/api/v1/campaigns/{id}/milestones/{index}/release``.
    """
    segments = path.rstrip("/").split("/")
    template = segments[:1]
    for previous, segment in zip(segments, segments[1:]):
        placeholder = _PLACEHOLDERS.get(previous)
        template.append(placeholder if placeholder and segment else segment)
    return "/".join(template) or "/"


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Counts, times and tracks in-flight requests per method and route."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in _UNMEASURED:
            return await call_next(request)

        method = request.method
        route = _normalise_path(request.url.path)
        in_flight = http_requests_in_progress.labels(method=method)

        in_flight.inc()
        started = time.perf_counter()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            http_request_duration_seconds.labels(method=method, endpoint=route).observe(
                time.perf_counter() - started
            )
            http_requests_total.labels(method=method, endpoint=route, status=status).inc()
            in_flight.dec()
