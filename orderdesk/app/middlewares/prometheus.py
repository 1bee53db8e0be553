"""Prometheus middleware for HTTP request metrics."""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ..routes_metrics import http_requests_total


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Increment HTTP request counters, labelled by route template."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        # templates keep label cardinality bounded; raw paths embed order ids
        route = request.scope.get("route")
        route_path = route.path if route else "unmatched"
        http_requests_total.labels(
            route=route_path,
            method=request.method,
            status=str(response.status_code),
        ).inc()
        return response
