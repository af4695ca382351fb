"""Prometheus metrics."""

from __future__ import annotations

from .prometheus import DEFAULT_LATENCY_BUCKETS, REGISTRY, application_info

__all__ = ["DEFAULT_LATENCY_BUCKETS", "REGISTRY", "application_info"]
