"""Entry-point for the Music Share application."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from musicshare.bootstrap import BootstrapError, initialize_app
from musicshare.logging_utils import build_handlers, configure_logging, get_log_file_path
from musicshare.services.listing import ListingService
from musicshare.services.library_config import ConfigSaveError
from musicshare.services.tunnels import TunnelSupervisor
from musicshare.services.updates import ConfigUpdateHandler
from musicshare.ui.console import ConsoleUI
from musicshare.web import create_app


LOGGER = logging.getLogger("music_share")


cli = typer.Typer(add_completion=False, help="Music Share management commands")

config_option = typer.Option(
    None,
    "--config",
    "-c",
    help="Settings file to use instead of config/default.json.",
    envvar="MUSIC_SHARE_CONFIG",
)


def _prepare_logging(data_root: Path) -> None:
    log_file = get_log_file_path(data_root)
    try:
        handlers = build_handlers(log_file)
    except OSError as error:
        handlers = build_handlers()
        configure_logging(handlers=handlers)
        LOGGER.warning("Could not open log file %s: %s", log_file, error)
        return
    configure_logging(handlers=handlers)


def _bootstrap(config_path: Optional[Path], *, launch_tunnels: bool):
    try:
        return initialize_app(config_path=config_path, launch_tunnels=launch_tunnels)
    except BootstrapError as error:
        typer.echo(f"Startup failed: {error}", err=True)
        raise typer.Exit(code=1) from error


def _normalize_root_path(root_path: Optional[str]) -> str:
    if root_path is None:
        return ""
    normalized = root_path.strip()
    if not normalized:
        return ""
    if not normalized.startswith("/"):
        normalized = f"/{normalized}"
    return normalized.rstrip("/")


@cli.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Launch the web server when no explicit command is provided."""

    if ctx.invoked_subcommand is None:
        ctx.invoke(serve, host=None, port=None, root_path=None, config=None)


@cli.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host interface for the web server"),
    port: Optional[int] = typer.Option(
        None,
        help="Port for the web server and the tunnels (defaults to the settings file)",
    ),
    root_path: Optional[str] = typer.Option(
        None,
        help="Prefix the application expects when mounted behind a proxy",
        envvar="MUSIC_SHARE_ROOT_PATH",
    ),
    config: Optional[Path] = config_option,
) -> None:
    """Serve the configured directories and start one tunnel per stored domain."""

    configure_logging()
    context = _bootstrap(config, launch_tunnels=False)
    _prepare_logging(context.config.data_root)

    app_config = context.config
    tunnels = context.tunnels
    if port is not None and port != app_config.port:
        app_config = replace(app_config, port=port)
        tunnels = TunnelSupervisor.from_app_config(app_config)
    bind_host = host or app_config.host

    tunnels.launch_all(context.store.snapshot().tunnel_domains)

    normalized_root = _normalize_root_path(root_path)
    app = create_app(
        context.store,
        config=app_config,
        tunnels=tunnels,
        root_path=normalized_root,
    )

    server_config = uvicorn.Config(
        app,
        host=bind_host,
        port=app_config.port,
        log_config=None,
        root_path=normalized_root,
    )
    server = uvicorn.Server(server_config)
    app.state.server = server

    LOGGER.info("Serving music on http://%s:%s%s/", bind_host, app_config.port, normalized_root)
    server.run()


@cli.command()
def scan(config: Optional[Path] = config_option) -> None:
    """Print every audio file found under the configured directories."""

    context = _bootstrap(config, launch_tunnels=False)
    listing = ListingService(context.store).build_current()
    ConsoleUI(listing, echo=typer.echo).run()


@cli.command()
def add(
    directory: Optional[str] = typer.Option(None, "--directory", "-d", help="Directory to watch"),
    domain: Optional[str] = typer.Option(None, "--domain", help="Tunnel domain to expose"),
    config: Optional[Path] = config_option,
) -> None:
    """Add a directory and/or tunnel domain to the library file."""

    if not directory and not domain:
        raise typer.BadParameter("Provide --directory, --domain or both.")

    context = _bootstrap(config, launch_tunnels=False)
    handler = ConfigUpdateHandler(context.store)
    try:
        result = handler.apply(directory, domain)
    except ConfigSaveError as error:
        typer.echo(f"Could not save configuration: {error}", err=True)
        raise typer.Exit(code=1) from error

    if not result.ok:
        typer.echo(result.message, err=True)
        raise typer.Exit(code=1)

    if result.directory_added:
        typer.echo(f"Added directory: {directory}")
    if result.domain_added:
        typer.echo(f"Added tunnel domain: {domain}")
    if not result.changed:
        typer.echo("Nothing changed; entries were already configured.")


if __name__ == "__main__":
    cli()
