"""Dependencies exposing the process-wide Consul client and admin service.

Both objects are built once by the application lifespan and stored on
``app.state``.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from consee.core.exceptions import internal_error
from consee.features.admin.service import AdminService
from consee.infra.consul import ConsulClientProtocol


def get_consul_client(request: Request) -> ConsulClientProtocol:
    client = getattr(request.app.state, "consul_client", None)
    if client is None:
        raise internal_error("consul client is not initialized")
    return client


def get_admin_service(request: Request) -> AdminService:
    admin = getattr(request.app.state, "admin_service", None)
    if admin is None:
        raise internal_error("admin service is not initialized")
    return admin


ConsulClientDep = Annotated[ConsulClientProtocol, Depends(get_consul_client)]
AdminServiceDep = Annotated[AdminService, Depends(get_admin_service)]
