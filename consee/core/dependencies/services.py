"""Per-request service factories.

User-facing services are bound to the caller's token; the metadata service
always uses the fixed admin credentials.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from consee.core.repositories import ConsulACLRepository, ConsulKVRepository, user_options
from consee.core.settings import get_consul_settings
from consee.features.acl.service import ACLService
from consee.features.kv.service import KVService
from consee.features.transfer.service import TransferService

from .auth import UserTokenDep
from .consul import AdminServiceDep, ConsulClientDep


def get_acl_service(token: UserTokenDep, client: ConsulClientDep, admin: AdminServiceDep) -> ACLService:
    query, write = user_options(token, get_consul_settings().datacenter)
    return ACLService(ConsulACLRepository(client, query, write), admin)


def get_kv_service(token: UserTokenDep, client: ConsulClientDep, admin: AdminServiceDep) -> KVService:
    query, write = user_options(token, get_consul_settings().datacenter)
    return KVService(ConsulKVRepository(client, query, write), admin)


ACLServiceDep = Annotated[ACLService, Depends(get_acl_service)]
KVServiceDep = Annotated[KVService, Depends(get_kv_service)]


def get_transfer_service(kv: KVServiceDep, acl: ACLServiceDep, admin: AdminServiceDep) -> TransferService:
    return TransferService(kv, acl, admin)


TransferServiceDep = Annotated[TransferService, Depends(get_transfer_service)]


async def check_user_token(acl: ACLServiceDep) -> None:
    """Reject callers whose token Consul does not know."""
    await acl.validate_token()


async def check_admin_token(acl: ACLServiceDep) -> None:
    """Reject callers without the global-management policy."""
    await acl.check_admin()
