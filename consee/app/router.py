"""Router registry and setup."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from fastapi.staticfiles import StaticFiles

from consee.core.settings import get_app_settings
from consee.features.acl.router import router as acl_router
from consee.features.auth.router import router as auth_router
from consee.features.kv.router import router as kv_router
from consee.features.metrics.router import router as metrics_router
from consee.features.notifications.router import router as notifications_router
from consee.features.transfer.router import router as transfer_router

if TYPE_CHECKING:
    from fastapi import FastAPI

    from consee.core.settings import AppSettings

logger = logging.getLogger(__name__)


def setup_routers(app: FastAPI, app_settings: AppSettings | None = None) -> None:
    """Register all feature routers with the application.

    Args:
        app: FastAPI application instance.
        app_settings: Optional application settings override for the API
            prefix and the UI directory.
    """
    app_settings = app_settings or get_app_settings()
    api_prefix = app_settings.api_prefix

    # Include metrics endpoint (no prefix - accessible at /metrics)
    app.include_router(metrics_router)

    app.include_router(auth_router, prefix=api_prefix)
    app.include_router(transfer_router, prefix=api_prefix)
    app.include_router(kv_router, prefix=api_prefix)
    app.include_router(acl_router, prefix=api_prefix)
    app.include_router(notifications_router, prefix=api_prefix)

    if app_settings.ui_dir:
        ui_dir = Path(app_settings.ui_dir)
        if ui_dir.is_dir():
            app.mount("/ui", StaticFiles(directory=ui_dir, html=True), name="ui")
            logger.info("Web UI mounted", extra={"ui_dir": str(ui_dir)})
        else:
            logger.warning("Web UI directory not found, UI disabled", extra={"ui_dir": str(ui_dir)})
