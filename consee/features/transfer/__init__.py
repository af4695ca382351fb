"""Export and import of KV and ACL state."""

from __future__ import annotations

from .service import TransferService

__all__ = ["TransferService"]
