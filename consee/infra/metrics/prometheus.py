"""Prometheus registry shared by every metric of the service."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Gauge

# Custom registry so tests and multiple app instances do not collide with
# the process-global default registry.
REGISTRY = CollectorRegistry()

# Covers response times from 1ms to 10s
DEFAULT_LATENCY_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
)

application_info = Gauge(
    "consee_application_info",
    "Static application information; value is always 1.",
    ["version", "consul_address", "datacenter"],
    registry=REGISTRY,
)
