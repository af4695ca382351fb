"""Modular Pydantic Settings v2 configuration.

Import settings via cached loaders:
    from consee.core.settings import get_consul_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. config.yaml (``CONSEE_CONFIG`` or config/config.yaml)
    3. Environment variables
    4. .env file
"""

from __future__ import annotations

from .app import AppSettings
from .consul import ConsulSettings
from .loader import (
    clear_settings_cache,
    get_app_settings,
    get_consul_settings,
    get_logging_settings,
    set_overrides,
)
from .logs import LoggingSettings

__all__ = [
    "AppSettings",
    "ConsulSettings",
    "LoggingSettings",
    "clear_settings_cache",
    "get_app_settings",
    "get_consul_settings",
    "get_logging_settings",
    "set_overrides",
]
