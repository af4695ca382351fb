"""Unit tests for the settings layer and its YAML source."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from consee.core.settings import (
    AppSettings,
    ConsulSettings,
    LoggingSettings,
    get_app_settings,
    get_consul_settings,
    get_logging_settings,
    set_overrides,
)
from consee.core.settings.yaml_sources import CONFIG_PATH_ENV, load_config_document

CONFIG = """
consul:
  address: consul.yaml.test:8500
  datacenter: dc7
  admin_token: 00000000-0000-0000-0000-00000000000a
log_level: warn
log_file: ""
port: 4000
"""


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG)
    monkeypatch.setenv(CONFIG_PATH_ENV, str(path))
    return path


@pytest.mark.unit
class TestAppSettings:
    """Test suite for AppSettings."""

    def test_defaults(self):
        settings = AppSettings()

        assert settings.port == 3668
        assert settings.api_prefix == "/api/v0"
        assert settings.max_import_size_bytes == 64 * 1024 * 1024

    def test_frozen(self):
        settings = AppSettings()

        with pytest.raises(ValidationError):
            settings.port = 1

    def test_port_range(self):
        with pytest.raises(ValidationError):
            AppSettings(port=70000)


@pytest.mark.unit
class TestConsulSettings:
    """Test suite for ConsulSettings."""

    def test_address_gets_default_scheme(self):
        settings = ConsulSettings(address="consul.local:8500/")

        assert settings.base_url == "http://consul.local:8500"
        assert settings.scheme == "http"

    def test_https_address_kept(self):
        settings = ConsulSettings(address="https://consul.local")

        assert settings.scheme == "https"

    def test_admin_options_carry_token_and_datacenter(self):
        settings = ConsulSettings(admin_token="secret", datacenter="dc3")

        assert settings.admin_query_options().token == "secret"
        assert settings.admin_write_options().datacenter == "dc3"

    def test_missing_admin_token_is_empty(self, monkeypatch):
        monkeypatch.delenv("CONSUL_ADMIN_TOKEN", raising=False)

        assert ConsulSettings().admin_token_value() == ""

    def test_admin_token_hidden_in_repr(self):
        settings = ConsulSettings(admin_token="top-secret")

        assert "top-secret" not in repr(settings)


@pytest.mark.unit
class TestLoggingSettings:
    """Test suite for LoggingSettings."""

    def test_level_normalized(self):
        assert LoggingSettings(level="debug").level == "DEBUG"
        assert LoggingSettings(level="warn").level == "WARNING"

    def test_invalid_level(self):
        with pytest.raises(ValidationError):
            LoggingSettings(level="chatty")

    def test_logging_kwargs(self):
        kwargs = LoggingSettings(level="ERROR", log_file="/tmp/consee.log").to_logging_kwargs()

        assert kwargs["log_level"] == "ERROR"
        assert kwargs["file_path"] == "/tmp/consee.log"


@pytest.mark.unit
class TestYamlSource:
    """The single config file feeds every settings class."""

    def test_missing_file_is_empty(self, tmp_path):
        assert load_config_document(tmp_path / "absent.yaml") == {}

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ValueError, match="mapping"):
            load_config_document(path)

    def test_sections_routed_to_classes(self, config_file):
        consul = get_consul_settings()
        app = get_app_settings()
        logs = get_logging_settings()

        assert consul.base_url == "http://consul.yaml.test:8500"
        assert consul.datacenter == "dc7"
        assert consul.admin_token_value() == "00000000-0000-0000-0000-00000000000a"
        assert app.port == 4000
        assert logs.level == "WARNING"
        assert logs.log_file is None

    def test_file_wins_over_environment(self, config_file, monkeypatch):
        monkeypatch.setenv("CONSUL_DATACENTER", "from-env")

        assert get_consul_settings().datacenter == "dc7"


@pytest.mark.unit
class TestOverrides:
    """Command-line values win over the config file."""

    def test_overrides_beat_file(self, config_file):
        set_overrides(app={"port": 5000}, consul={"admin_token": "cli-token"}, logging={"level": "DEBUG"})

        assert get_app_settings().port == 5000
        assert get_consul_settings().admin_token_value() == "cli-token"
        assert get_logging_settings().level == "DEBUG"

    def test_none_values_ignored(self, config_file):
        set_overrides(app={"port": None}, consul={"admin_token": None})

        assert get_app_settings().port == 4000
        assert get_consul_settings().admin_token_value() == "00000000-0000-0000-0000-00000000000a"

    def test_overrides_clear_cache(self):
        first = get_app_settings()
        set_overrides(app={"port": 8123})

        assert get_app_settings() is not first
        assert get_app_settings().port == 8123
