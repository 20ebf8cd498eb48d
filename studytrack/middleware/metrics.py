"""HTTP request metrics.

The endpoint label is the matched route template (`/progress/subject`),
falling back to "unmatched" for 404s, so the label set stays closed no
matter what paths clients probe.  Scrapes of /metrics are not counted.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match

from studytrack.core.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION

SCRAPE_PATH = "/metrics"


def _endpoint(request: Request) -> str:
    for route in request.app.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return route.path
    return "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == SCRAPE_PATH:
            return await call_next(request)

        started = time.perf_counter()
        status = 500
        with ACTIVE_REQUESTS.track_inprogress():
            try:
                response = await call_next(request)
                status = response.status_code
            finally:
                endpoint = _endpoint(request)
                REQUEST_COUNT.labels(request.method, endpoint, str(status)).inc()
                REQUEST_DURATION.labels(request.method, endpoint).observe(
                    time.perf_counter() - started
                )
        return response
