# routes_metrics.py

"""Prometheus metrics and /metrics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Counters
http_requests_total = Counter(
    "http_requests_total", "Total HTTP requests", ["route", "method", "status"]
)
order_transitions_total = Counter(
    "order_transitions_total",
    "Order status transition attempts by outcome",
    ["outcome"],
)
order_audit_failures_total = Counter(
    "order_audit_failures_total",
    "Committed transitions whose audit event could not be written",
)
orders_expired_total = Counter(
    "orders_expired_total", "Pending orders moved to expired by the expiry job"
)
order_audit_failures_total.inc(0)
orders_expired_total.inc(0)

# Histograms
order_transition_seconds = Histogram(
    "order_transition_seconds",
    "Latency of order status transition attempts",
    ["outcome"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

router = APIRouter()


@router.get("/metrics")
async def metrics_endpoint() -> Response:
    """Expose Prometheus metrics."""
    data = generate_latest()
    return Response(data, media_type=CONTENT_TYPE_LATEST)
