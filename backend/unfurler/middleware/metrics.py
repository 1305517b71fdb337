"""Record per-route request counts and latencies."""

import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from unfurler.core.metrics import http_request_duration_seconds, http_requests_total


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response = await call_next(request)

        # Route template rather than raw path, so query strings and
        # unknown paths don't explode label cardinality
        route = request.scope.get("route")
        path = getattr(route, "path", "unmatched")
        http_requests_total.labels(
            method=request.method, path=path, status=str(response.status_code)
        ).inc()
        http_request_duration_seconds.labels(method=request.method, path=path).observe(
            time.perf_counter() - start
        )
        return response
