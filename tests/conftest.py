"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings defaults so no test reads a real config file
    - Consul Fixtures: in-memory Consul client with a bootstrap token
    - Service Fixtures: metadata, ACL, KV and transfer services
    - Application Fixtures: FastAPI app and HTTP client

The in-memory client refuses privileged calls to tokens without the
global-management policy, so the ``user_token`` fixture is the way to
exercise permission failures.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from consee.core.constants import TOKEN_HEADER
from consee.core.repositories import AdminRepository, ConsulACLRepository, ConsulKVRepository, user_options
from consee.core.settings import ConsulSettings, clear_settings_cache, set_overrides
from consee.features.acl.service import ACLService
from consee.features.admin.service import AdminService
from consee.features.kv.service import KVService
from consee.features.transfer.service import TransferService
from consee.infra.consul import MockConsulClient

ADMIN_SECRET = "11111111-2222-3333-4444-555555555555"
ADMIN_ACCESSOR = "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee"
USER_SECRET = "99999999-8888-7777-6666-555555555555"

# Ensure tests run without a config file or a Consul agent
os.environ["CONSEE_CONFIG"] = "/nonexistent/consee-test-config.yaml"
os.environ.setdefault("CONSUL_ADDRESS", "http://consul.test:8500")
os.environ.setdefault("CONSUL_DATACENTER", "dc1")
os.environ.setdefault("CONSUL_ADMIN_TOKEN", ADMIN_SECRET)
os.environ.setdefault("LOG_JSON_LOGS", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Drop cached settings and command-line overrides around every test."""
    set_overrides()
    yield
    set_overrides()
    clear_settings_cache()


# ============================================================================
# Consul Fixtures
# ============================================================================


@pytest.fixture
def admin_secret() -> str:
    return ADMIN_SECRET


@pytest.fixture
def consul() -> MockConsulClient:
    """In-memory Consul with a bootstrap (global-management) token."""
    client = MockConsulClient()
    client.bootstrap(ADMIN_SECRET, accessor_id=ADMIN_ACCESSOR)
    return client


@pytest.fixture
def user_token(consul: MockConsulClient) -> str:
    """Secret of a known token holding no policy."""
    consul.add_token(USER_SECRET, description="plain user")
    return USER_SECRET


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def admin_service(consul: MockConsulClient) -> AdminService:
    settings = ConsulSettings(admin_token=ADMIN_SECRET, datacenter="dc1")
    return AdminService(AdminRepository.from_settings(consul, settings))


@pytest.fixture
def make_services(consul: MockConsulClient, admin_service: AdminService):
    """Factory building the caller-bound services for a given secret."""

    def build(secret: str = ADMIN_SECRET) -> tuple[KVService, ACLService, TransferService]:
        query, write = user_options(secret, "dc1")
        kv = KVService(ConsulKVRepository(consul, query, write), admin_service)
        acl = ACLService(ConsulACLRepository(consul, query, write), admin_service)
        return kv, acl, TransferService(kv, acl, admin_service)

    return build


@pytest.fixture
def kv_service(make_services) -> KVService:
    return make_services()[0]


@pytest.fixture
def acl_service(make_services) -> ACLService:
    return make_services()[1]


@pytest.fixture
async def transfer_service(make_services) -> TransferService:
    """Transfer service for the admin token, with the admin bookkeeping written."""
    transfer = make_services()[2]
    await transfer.initialize()
    return transfer


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def app(consul: MockConsulClient, admin_service: AdminService):
    """FastAPI application wired to the in-memory Consul.

    ASGITransport does not run the lifespan, so the objects it would build
    are stored on ``app.state`` directly.
    """
    from consee.app.main import create_app

    application = create_app(consul_client=consul)
    application.state.admin_service = admin_service
    return application


@pytest.fixture
async def client(app, transfer_service) -> AsyncGenerator[AsyncClient]:
    """HTTP client sending the admin token on every request."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={TOKEN_HEADER: ADMIN_SECRET},
    ) as ac:
        yield ac
