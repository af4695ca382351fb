"""Prometheus metrics for export and import."""

from __future__ import annotations

from prometheus_client import Counter

from consee.infra.metrics.prometheus import REGISTRY

transfer_exports_total = Counter(
    "consee_exports_total",
    "Total exports attempted.",
    ["format", "outcome"],  # outcome: success/error
    registry=REGISTRY,
)

transfer_import_items_total = Counter(
    "consee_import_items_total",
    "Import items classified or applied. "
    "Usage: Increment once per item in the final import response.",
    ["kind", "outcome", "dryrun"],  # outcome: success/conflict/error
    registry=REGISTRY,
)
