"""Prometheus metrics for twilix observability."""

import os
import time

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    multiprocess,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

# === Counters ===

SIGNATURE_CHECKS_TOTAL = Counter(
    "twilix_signature_checks_total",
    "Webhook signature checks",
    ["outcome"],  # outcome: valid, invalid, missing_header, malformed_body
)

API_CALLS_TOTAL = Counter(
    "twilix_api_calls_total",
    "Twilio REST API calls",
    ["operation", "status"],
)

WEBHOOK_REQUESTS_TOTAL = Counter(
    "twilix_webhook_requests_total",
    "Inbound webhook HTTP requests",
    ["method", "endpoint", "status"],
)

CIRCUIT_BREAKER_TRANSITIONS = Counter(
    "twilix_circuit_breaker_transitions_total",
    "Circuit breaker state transitions",
    ["from_state", "to_state"],
)

# === Histograms ===

API_CALL_LATENCY = Histogram(
    "twilix_api_call_latency_seconds",
    "Twilio REST API call latency in seconds",
    ["operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

WEBHOOK_REQUEST_LATENCY = Histogram(
    "twilix_webhook_request_latency_seconds",
    "Inbound webhook handling latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0],
)

# === Gauges ===

CIRCUIT_BREAKER_STATE = Gauge(
    "twilix_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=half_open, 2=open)",
)


# === Helper Functions ===


def record_signature_check(outcome: str) -> None:
    """Record the outcome of a webhook signature check."""
    SIGNATURE_CHECKS_TOTAL.labels(outcome=outcome).inc()


def record_api_call(operation: str, status: int | str, latency: float) -> None:
    """Record a REST API call."""
    API_CALLS_TOTAL.labels(operation=operation, status=str(status)).inc()
    API_CALL_LATENCY.labels(operation=operation).observe(latency)


def record_webhook_request(
    method: str,
    endpoint: str,
    status: int,
    latency: float,
) -> None:
    """Record an inbound webhook request."""
    WEBHOOK_REQUESTS_TOTAL.labels(
        method=method,
        endpoint=endpoint,
        status=str(status),
    ).inc()
    WEBHOOK_REQUEST_LATENCY.labels(
        method=method,
        endpoint=endpoint,
    ).observe(latency)


def record_circuit_transition(from_state: str, to_state: str) -> None:
    """Record a circuit breaker transition."""
    CIRCUIT_BREAKER_TRANSITIONS.labels(
        from_state=from_state,
        to_state=to_state,
    ).inc()
    update_circuit_breaker_state(to_state)


def update_circuit_breaker_state(state: str) -> None:
    """Update circuit breaker state gauge."""
    state_map = {"closed": 0, "half_open": 1, "open": 2}
    CIRCUIT_BREAKER_STATE.set(state_map.get(state, -1))


# === HTTP Endpoint ===


class MetricsMiddleware(BaseHTTPMiddleware):
    """Webhook request metrics middleware."""

    def __init__(self, app: ASGIApp, exclude_paths: list[str] | None = None) -> None:
        super().__init__(app)
        self._exclude_paths = set(exclude_paths or [])

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self._exclude_paths:
            return await call_next(request)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            record_webhook_request(
                method=request.method,
                endpoint=request.url.path,
                status=500,
                latency=time.perf_counter() - start,
            )
            raise

        record_webhook_request(
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code,
            latency=time.perf_counter() - start,
        )
        return response


async def metrics_endpoint(_request: Request) -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    multiproc_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
    if multiproc_dir:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)  # type: ignore[no-untyped-call]
        return Response(
            generate_latest(registry),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    return Response(
        generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
