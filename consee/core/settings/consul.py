"""Consul connection settings.

Environment variables use CONSUL_ prefix.
Example: CONSUL_ADDRESS=http://consul.local:8500, CONSUL_ADMIN_TOKEN=...

The admin token is the fixed credential Consee uses for its own bookkeeping
under the internal key prefix. It must carry the global-management policy;
startup is aborted otherwise.
"""

from __future__ import annotations

from urllib.parse import urlsplit

from pydantic import Field, SecretStr, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from consee.infra.consul.models import QueryOptions, WriteOptions

from .yaml_sources import create_consul_yaml_source


class ConsulSettings(BaseSettings):
    """Consul agent connection settings.

    Environment variables use CONSUL_ prefix.
    Example: CONSUL_DATACENTER=dc2
    """

    # ──────────────────────────────────────────────────────────────
    # Consul agent connection
    # ──────────────────────────────────────────────────────────────

    address: str = Field(
        default="http://127.0.0.1:8500",
        description="Consul HTTP API address; scheme defaults to http when omitted",
    )

    datacenter: str = Field(
        default="dc1",
        description="Datacenter used for admin requests and as the default for user requests",
    )

    admin_token: SecretStr | None = Field(
        default=None,
        description="Consul ACL token with global-management policy used by Consee itself",
    )

    verify_ssl: bool = Field(
        default=True,
        description="Verify SSL certificates when using HTTPS",
    )

    connect_timeout: float = Field(
        default=5.0,
        ge=0.5,
        le=30.0,
        description="HTTP timeout in seconds for regular requests",
    )

    # ──────────────────────────────────────────────────────────────
    # Blocking queries
    # ──────────────────────────────────────────────────────────────

    watch_wait: float = Field(
        default=60.0,
        ge=1.0,
        le=600.0,
        description="Maximum wait in seconds for one blocking query in a watch loop",
    )

    @field_validator("address", mode="before")
    @classmethod
    def _normalize_address(cls, value: str) -> str:
        """Add the default scheme and drop trailing slashes."""
        if isinstance(value, str):
            value = value.strip().rstrip("/")
            if "://" not in value:
                value = "http://" + value
        return value

    # ──────────────────────────────────────────────────────────────
    # Computed properties
    # ──────────────────────────────────────────────────────────────

    @computed_field
    @property
    def base_url(self) -> str:
        """Consul base URL used by the HTTP client."""
        return self.address

    @computed_field
    @property
    def scheme(self) -> str:
        return urlsplit(self.address).scheme or "http"

    def admin_token_value(self) -> str:
        """Return the admin token, or an empty string when unset."""
        if self.admin_token is None:
            return ""
        return self.admin_token.get_secret_value()

    def admin_query_options(self) -> QueryOptions:
        """Fixed read options used by the admin repository."""
        return QueryOptions(token=self.admin_token_value(), datacenter=self.datacenter)

    def admin_write_options(self) -> WriteOptions:
        """Fixed write options used by the admin repository."""
        return WriteOptions(token=self.admin_token_value(), datacenter=self.datacenter)

    model_config = SettingsConfigDict(
        env_prefix="CONSUL_",
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
            create_consul_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
