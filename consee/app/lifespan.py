"""Application lifespan management.

Startup order:
1. Logging and the application info metric
2. Consul client and the admin repository/services
3. Initialization of the admin token bookkeeping (aborts startup on failure)

Shutdown closes the Consul client when the lifespan created it.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from consee.core.exceptions import DomainError
from consee.core.repositories import AdminRepository
from consee.core.settings import get_app_settings, get_consul_settings, get_logging_settings
from consee.features.acl.service import ACLService
from consee.features.admin.service import AdminService
from consee.features.kv.service import KVService
from consee.features.transfer.service import TransferService
from consee.infra.consul import ConsulClient
from consee.infra.logging import setup_logging
from consee.infra.metrics import application_info

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

    from consee.core.settings import ConsulSettings
    from consee.infra.consul import ConsulClientProtocol

logger = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the service can not start serving requests."""


def build_admin_service(client: ConsulClientProtocol, settings: ConsulSettings) -> AdminService:
    return AdminService(AdminRepository.from_settings(client, settings))


async def initialize(admin: AdminService) -> None:
    """Run first-run initialization with the admin credentials."""
    repository = admin.repository
    transfer = TransferService(
        KVService(repository.kv, admin),
        ACLService(repository.acl, admin),
        admin,
    )
    await transfer.initialize()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the shared Consul objects, initialize, and clean up on exit.

    A client already stored on ``app.state.consul_client`` is used as is and
    left open on shutdown.
    """
    app_settings = get_app_settings()
    consul = get_consul_settings()

    setup_logging(log_settings=get_logging_settings(), force=True)
    logger.info("Application starting", extra={"version": app_settings.version, "base_url": consul.base_url})
    application_info.labels(
        version=app_settings.version,
        consul_address=consul.base_url,
        datacenter=consul.datacenter,
    ).set(1)

    if not consul.admin_token_value():
        raise StartupError("consul admin token is not configured (CONSUL_ADMIN_TOKEN or --token)")

    injected = getattr(app.state, "consul_client", None)
    client = injected if injected is not None else ConsulClient(consul)
    admin = build_admin_service(client, consul)
    app.state.consul_client = client
    app.state.admin_service = admin

    try:
        try:
            await initialize(admin)
        except DomainError as e:
            logger.error("Initialization failed, aborting startup", extra={"error": e.message})
            raise StartupError(f"initialization failed: {e.message}") from e
        logger.info("Initialization finished", extra={"datacenter": consul.datacenter})
        yield
    finally:
        if injected is None:
            await client.close()
        logger.info("Application stopped")
