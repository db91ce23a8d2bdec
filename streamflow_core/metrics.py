"""
Prometheus Metrics
==================
Metric definitions and recording helpers for the proxy.
"""

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# Dedicated registry so several app instances (tests, edge + server) can coexist
PROXY_REGISTRY = CollectorRegistry()

PROXY_REQUESTS_TOTAL = Counter(
    name="streamflow_proxy_requests_total",
    documentation="Proxy requests by final outcome",
    labelnames=["outcome"],
    registry=PROXY_REGISTRY,
)

ACTIVE_REQUESTS = Gauge(
    name="streamflow_active_requests",
    documentation="Proxy requests currently holding an admission slot",
    registry=PROXY_REGISTRY,
)

UPSTREAM_LATENCY = Histogram(
    name="streamflow_upstream_latency_seconds",
    documentation="Time from upstream request to response headers, per hop",
    buckets=[
        0.01, 0.025, 0.05, 0.1, 0.25,
        0.5, 1.0, 2.5, 5.0, 10.0, 30.0,
    ],
    registry=PROXY_REGISTRY,
)

RELAY_BYTES_TOTAL = Counter(
    name="streamflow_relay_bytes_total",
    documentation="Body bytes relayed from upstream to clients",
    registry=PROXY_REGISTRY,
)

REDIRECTS_TOTAL = Counter(
    name="streamflow_redirects_total",
    documentation="Upstream redirects followed",
    registry=PROXY_REGISTRY,
)


def record_outcome(outcome: str) -> None:
    """Count a finished proxy request (e.g. completed, rejected_expired)."""
    PROXY_REQUESTS_TOTAL.labels(outcome=outcome).inc()


def record_active(active: int) -> None:
    ACTIVE_REQUESTS.set(active)


def record_upstream_latency(duration_seconds: float) -> None:
    UPSTREAM_LATENCY.observe(duration_seconds)


def record_relay_bytes(count: int) -> None:
    RELAY_BYTES_TOTAL.inc(count)


def record_redirect() -> None:
    REDIRECTS_TOTAL.inc()


def get_metrics_text() -> tuple:
    """Return (body, content_type) for the proxy registry."""
    return generate_latest(PROXY_REGISTRY), CONTENT_TYPE_LATEST
