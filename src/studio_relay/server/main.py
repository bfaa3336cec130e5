"""Uvicorn server entry point — the studio-server CLI command."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click
import uvicorn

from studio_relay.config.loader import load_settings
from studio_relay.server.app import create_app


@click.command()
@click.option("--host", default=None, help="Bind host (default: settings.server.host)")
@click.option("--port", default=None, type=int, help="Bind port (default: settings.server.port)")
@click.option("--project-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Directory holding .studio/settings.yaml (default: cwd)")
@click.option("--log-level", default="info",
              type=click.Choice(["critical", "error", "warning", "info", "debug"]))
def main(host: str | None, port: int | None, project_dir: Path | None, log_level: str) -> None:
    """Start the Studio chat relay server."""
    try:
        settings = asyncio.run(load_settings(project_dir=project_dir or Path.cwd(), user_dir=Path.home()))
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    if settings.verbose and log_level == "info":
        log_level = "debug"

    uvicorn.run(
        create_app(settings=settings),
        host=host or settings.server.host,
        port=port or settings.server.port,
        log_level=log_level,
    )


if __name__ == "__main__":
    main()
