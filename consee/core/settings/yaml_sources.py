"""YAML config source for the single ``config.yaml`` file.

The file groups every concern in one document:

    consul:
      address: http://127.0.0.1:8500
      datacenter: dc1
      admin_token: 00000000-0000-0000-0000-000000000000
    log_level: info
    log_file: ""
    port: 3668

Each settings class receives only the keys it owns, renamed to its field
names. The file path defaults to ``config/config.yaml`` and can be
overridden with the ``CONSEE_CONFIG`` environment variable (the ``--config``
CLI flag sets it).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic_settings import PydanticBaseSettingsSource

if TYPE_CHECKING:
    from collections.abc import Callable

    from pydantic.fields import FieldInfo
    from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "CONSEE_CONFIG"
DEFAULT_CONFIG_PATH = "config/config.yaml"


def config_path() -> Path:
    """Resolve the configuration file path."""
    return Path(os.getenv(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)


def load_config_document(path: Path | None = None) -> dict[str, Any]:
    """Load the YAML document, returning an empty mapping when unavailable."""
    path = path or config_path()
    if not path.is_file():
        logger.debug("Config file not found, using environment only", extra={"path": str(path)})
        return {}
    with path.open(encoding="utf-8") as fh:
        document = yaml.safe_load(fh) or {}
    if not isinstance(document, dict):
        raise ValueError(f"config file {path} must contain a mapping at the top level")
    return document


class ConseeYamlSettingsSource(PydanticBaseSettingsSource):
    """Settings source reading one concern out of ``config.yaml``.

    Args:
        settings_cls: The settings class being configured.
        extract: Function turning the whole document into this class's values.
    """

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        extract: Callable[[dict[str, Any]], dict[str, Any]],
    ) -> None:
        super().__init__(settings_cls)
        self._values = {k: v for k, v in extract(load_config_document()).items() if v is not None}

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return self._values.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return dict(self._values)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(path={config_path()}, keys={sorted(self._values)})"


# ============================================================================
# Per-concern extractors
# ============================================================================


def _consul_section(document: dict[str, Any]) -> dict[str, Any]:
    section = document.get("consul") or {}
    return {
        "address": section.get("address"),
        "datacenter": section.get("datacenter"),
        "admin_token": section.get("admin_token"),
    }


def _app_section(document: dict[str, Any]) -> dict[str, Any]:
    return {"port": document.get("port")}


def _logging_section(document: dict[str, Any]) -> dict[str, Any]:
    return {
        "level": document.get("log_level"),
        "log_file": document.get("log_file") or None,
    }


def create_consul_yaml_source(settings_cls: type[BaseSettings]) -> ConseeYamlSettingsSource:
    """Create YAML source for ConsulSettings (``consul:`` section)."""
    return ConseeYamlSettingsSource(settings_cls, _consul_section)


def create_app_yaml_source(settings_cls: type[BaseSettings]) -> ConseeYamlSettingsSource:
    """Create YAML source for AppSettings (top-level ``port``)."""
    return ConseeYamlSettingsSource(settings_cls, _app_section)


def create_logging_yaml_source(settings_cls: type[BaseSettings]) -> ConseeYamlSettingsSource:
    """Create YAML source for LoggingSettings (``log_level``, ``log_file``)."""
    return ConseeYamlSettingsSource(settings_cls, _logging_section)
