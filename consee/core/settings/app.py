"""Application settings for the HTTP server."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_app_yaml_source


class AppSettings(BaseSettings):
    """HTTP server and API settings.

    Environment variables use APP_ prefix.
    Example: APP_PORT=3668, APP_DEBUG=true
    """

    title: str = Field(
        default="Consee",
        min_length=1,
        max_length=200,
        description="API title displayed in documentation",
    )
    version: str = Field(
        default="0.1.0",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9]+)?$",
        description="API version (semver format)",
    )
    host: str = Field(default="0.0.0.0", description="Interface the server binds to")
    port: int = Field(default=3668, ge=1, le=65535, description="HTTP server port")
    debug: bool = Field(default=False, description="Enable debug mode and access logs")
    api_prefix: str = Field(
        default="/api/v0",
        pattern=r"^/.*$",
        description="Base URL prefix for API routes",
    )
    ui_dir: str | None = Field(
        default=None,
        description="Directory with the built web UI served under /ui (disabled when unset)",
    )
    max_import_size_mb: int = Field(
        default=64,
        ge=1,
        le=1024,
        description="Maximum accepted size of an uploaded import file",
    )

    @property
    def max_import_size_bytes(self) -> int:
        return self.max_import_size_mb * 1024 * 1024

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings source precedence."""
        return (
            init_settings,
            create_app_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
