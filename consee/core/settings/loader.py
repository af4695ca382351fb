"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Testing:
    In tests, clear the caches to force a reload:
    clear_settings_cache()
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from .app import AppSettings
from .consul import ConsulSettings
from .logs import LoggingSettings

# Values given on the command line; passed as init kwargs so they win over
# the config file and the environment.
_overrides: dict[str, dict[str, Any]] = {"app": {}, "consul": {}, "logging": {}}


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Get cached application settings.

    Returns:
        Validated and frozen AppSettings instance.
    """
    return AppSettings(**_overrides["app"])


@lru_cache(maxsize=1)
def get_consul_settings() -> ConsulSettings:
    """Get cached Consul settings.

    Returns:
        Validated and frozen ConsulSettings instance.
    """
    return ConsulSettings(**_overrides["consul"])


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings(**_overrides["logging"])


def clear_settings_cache() -> None:
    """Drop every cached settings instance (used by the CLI and tests)."""
    get_app_settings.cache_clear()
    get_consul_settings.cache_clear()
    get_logging_settings.cache_clear()


def set_overrides(
    *,
    app: dict[str, Any] | None = None,
    consul: dict[str, Any] | None = None,
    logging: dict[str, Any] | None = None,
) -> None:
    """Replace the command-line overrides and drop cached settings.

    Example:
        set_overrides(consul={"admin_token": token}, app={"port": 8080})
    """
    _overrides["app"] = {k: v for k, v in (app or {}).items() if v is not None}
    _overrides["consul"] = {k: v for k, v in (consul or {}).items() if v is not None}
    _overrides["logging"] = {k: v for k, v in (logging or {}).items() if v is not None}
    clear_settings_cache()
