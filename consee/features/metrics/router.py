"""Prometheus metrics endpoint.

Endpoints:
    GET /metrics - Prometheus scrape endpoint

Metrics Exposed:
    - consul_requests_total / consul_errors_total - Consul API calls
    - consul_request_duration_seconds - Consul API latency
    - consul_watch_iterations_total - blocking-query iterations of key watches
    - consee_exports_total / consee_import_items_total - export and import activity
    - consee_application_info - version, Consul address and datacenter
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from consee.infra.metrics.prometheus import REGISTRY

router = APIRouter(tags=["observability"])


@router.get("/metrics")
async def metrics() -> Response:
    data = generate_latest(REGISTRY)
    return Response(
        content=data,
        media_type=CONTENT_TYPE_LATEST,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )
