"""Metadata service for Consee's internal bookkeeping records."""

from __future__ import annotations

from .schemas import TokenMetadata
from .service import AdminService

__all__ = ["AdminService", "TokenMetadata"]
