"""FastAPI dependencies."""

from __future__ import annotations

from .auth import UserTokenDep, fuzz, get_user_token
from .consul import AdminServiceDep, ConsulClientDep, get_admin_service, get_consul_client
from .paths import KeyPathDep, NamePathDep, decode_b64
from .services import (
    ACLServiceDep,
    KVServiceDep,
    TransferServiceDep,
    check_admin_token,
    check_user_token,
    get_acl_service,
    get_kv_service,
    get_transfer_service,
)

__all__ = [
    "ACLServiceDep",
    "AdminServiceDep",
    "ConsulClientDep",
    "KVServiceDep",
    "KeyPathDep",
    "NamePathDep",
    "TransferServiceDep",
    "UserTokenDep",
    "check_admin_token",
    "check_user_token",
    "decode_b64",
    "fuzz",
    "get_acl_service",
    "get_admin_service",
    "get_consul_client",
    "get_kv_service",
    "get_transfer_service",
    "get_user_token",
]
