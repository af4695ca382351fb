"""Prometheus metrics for Consul API calls.

These metrics give visibility into how Consee talks to Consul: request
volume per operation and status, transport failures, and latency.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

from consee.infra.metrics.prometheus import DEFAULT_LATENCY_BUCKETS, REGISTRY

consul_requests_total = Counter(
    "consul_requests_total",
    "Total Consul API requests that received a response. "
    "Usage: Increment after each completed request.",
    ["operation", "status"],  # status: HTTP status code
    registry=REGISTRY,
)

consul_errors_total = Counter(
    "consul_errors_total",
    "Total Consul API requests that failed without a response. "
    "Usage: Increment when a request raises a transport error.",
    ["operation", "error_type"],  # error_type: timeout/connection/http_error
    registry=REGISTRY,
)

consul_request_duration_seconds = Histogram(
    "consul_request_duration_seconds",
    "Duration of Consul API requests in seconds, blocking queries excluded.",
    ["operation"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=REGISTRY,
)

consul_watch_iterations_total = Counter(
    "consul_watch_iterations_total",
    "Total blocking-query iterations performed by key watches.",
    ["outcome"],  # changed, unchanged, error
    registry=REGISTRY,
)
