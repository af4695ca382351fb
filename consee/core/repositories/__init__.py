"""Repository contracts and their Consul implementations."""

from __future__ import annotations

from .consul import AdminRepository, ConsulACLRepository, ConsulKVRepository, user_options
from .protocols import ACLRepository, KVRepository

__all__ = [
    "ACLRepository",
    "AdminRepository",
    "ConsulACLRepository",
    "ConsulKVRepository",
    "KVRepository",
    "user_options",
]
