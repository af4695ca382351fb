"""Command-line entry point.

Example:
    consee serve -c config/config.yaml -t <admin token> -p 3668 -v
"""

from __future__ import annotations

import os

import click

from consee.core.settings import get_app_settings, get_logging_settings, set_overrides
from consee.core.settings.yaml_sources import CONFIG_PATH_ENV
from consee.infra.logging import setup_logging


@click.group()
@click.version_option(package_name="consee", prog_name="consee")
def cli() -> None:
    """Consee - admin console for Consul KV and ACL."""


@cli.command()
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path of the YAML config file [default: config/config.yaml]",
)
@click.option("-t", "--token", default=None, help="Consul admin token (global-management policy)")
@click.option("-p", "--port", type=click.IntRange(1, 65535), default=None, help="HTTP port [default: 3668]")
@click.option("-v", "--verbose", is_flag=True, help="Log at DEBUG level")
def serve(config_file: str | None, token: str | None, port: int | None, verbose: bool) -> None:
    """Run the HTTP server with Uvicorn.

    Flags override the config file, which overrides the environment.
    """
    import uvicorn

    if config_file:
        os.environ[CONFIG_PATH_ENV] = config_file
    set_overrides(
        app={"port": port},
        consul={"admin_token": token},
        logging={"level": "DEBUG" if verbose else None},
    )

    app_settings = get_app_settings()
    log_settings = get_logging_settings()
    setup_logging(log_settings=log_settings, force=True)

    click.echo(f"Starting consee on {app_settings.host}:{app_settings.port}")
    uvicorn.run(
        "consee.app.main:create_app",
        factory=True,
        host=app_settings.host,
        port=app_settings.port,
        log_level=log_settings.level.lower(),
        log_config=None,
        access_log=app_settings.debug,
    )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
