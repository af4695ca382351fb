"""Tests for the ``consee`` command line."""

from __future__ import annotations

from click.testing import CliRunner
import pytest
import uvicorn

from consee.core.settings import get_consul_settings
from consee.core.settings.yaml_sources import CONFIG_PATH_ENV
from consee.main import cli

TOKEN = "11111111-2222-3333-4444-555555555555"


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def uvicorn_calls(monkeypatch):
    """Capture ``uvicorn.run`` instead of starting a server."""
    calls = []

    def fake_run(app, **kwargs):
        calls.append((app, kwargs))

    monkeypatch.setattr(uvicorn, "run", fake_run)
    return calls


@pytest.mark.unit
class TestCli:
    def test_help(self, cli_runner):
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "serve" in result.output

    def test_serve_help(self, cli_runner):
        result = cli_runner.invoke(cli, ["serve", "--help"])

        assert result.exit_code == 0
        assert "--token" in result.output
        assert "--port" in result.output

    def test_serve_with_flags(self, cli_runner, uvicorn_calls):
        result = cli_runner.invoke(cli, ["serve", "-t", TOKEN, "-p", "4100", "-v"])

        assert result.exit_code == 0, result.output
        [(target, kwargs)] = uvicorn_calls
        assert target == "consee.app.main:create_app"
        assert kwargs["factory"] is True
        assert kwargs["port"] == 4100
        assert kwargs["log_level"] == "debug"
        assert get_consul_settings().admin_token_value() == TOKEN

    def test_serve_with_config_file(self, cli_runner, uvicorn_calls, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_PATH_ENV, "/nonexistent/consee-test-config.yaml")
        config = tmp_path / "config.yaml"
        config.write_text("port: 4200\nconsul:\n  datacenter: dc9\n")

        result = cli_runner.invoke(cli, ["serve", "-c", str(config)])

        assert result.exit_code == 0, result.output
        assert uvicorn_calls[0][1]["port"] == 4200
        assert get_consul_settings().datacenter == "dc9"

    def test_invalid_port(self, cli_runner, uvicorn_calls):
        result = cli_runner.invoke(cli, ["serve", "-p", "70000"])

        assert result.exit_code != 0
        assert uvicorn_calls == []
