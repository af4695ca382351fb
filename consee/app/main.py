"""FastAPI application factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import FastAPI

from consee.app.exception_handlers import configure_exception_handlers
from consee.app.lifespan import lifespan
from consee.app.router import setup_routers
from consee.core.settings import get_app_settings

if TYPE_CHECKING:
    from consee.infra.consul import ConsulClientProtocol


def create_app(consul_client: ConsulClientProtocol | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        consul_client: Client to use instead of building one from settings;
            the lifespan leaves it open on shutdown.

    Returns:
        Configured FastAPI application instance.
    """
    app_settings = get_app_settings()

    app = FastAPI(
        title=app_settings.title,
        version=app_settings.version,
        debug=app_settings.debug,
        lifespan=lifespan,
    )
    if consul_client is not None:
        app.state.consul_client = consul_client

    configure_exception_handlers(app)
    setup_routers(app, app_settings)
    return app
