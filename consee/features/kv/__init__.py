"""Key/value feature: service and routes."""

from __future__ import annotations

from .service import KVService, b64key

__all__ = ["KVService", "b64key"]
