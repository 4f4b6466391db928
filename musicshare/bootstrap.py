"""Bootstrap logic that loads the library file and starts persisted tunnels."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .config import AppConfig, load_config
from .services.library_config import ConfigLoadError, ConfigSaveError, ConfigStore
from .services.tunnels import TunnelSupervisor

LOGGER = logging.getLogger(__name__)


class BootstrapError(RuntimeError):
    """Raised when initialization cannot be completed."""


@dataclass(frozen=True)
class AppContext:
    """Long-lived objects shared by the CLI and the web application."""

    config: AppConfig
    store: ConfigStore
    tunnels: TunnelSupervisor


class Bootstrapper:
    """High level object orchestrating initialization steps."""

    def __init__(
        self,
        config: AppConfig,
        *,
        store: ConfigStore | None = None,
        tunnels: TunnelSupervisor | None = None,
    ) -> None:
        self._config = config
        self._store = store or ConfigStore.from_app_config(config)
        self._tunnels = tunnels or TunnelSupervisor.from_app_config(config)

    @property
    def config(self) -> AppConfig:
        return self._config

    def initialize(self, *, launch_tunnels: bool = True) -> AppContext:
        """Load persisted state and, optionally, start one tunnel per domain."""

        LOGGER.debug("Starting bootstrap sequence")
        try:
            library = self._store.load()
        except (ConfigLoadError, ConfigSaveError) as error:
            raise BootstrapError(str(error)) from error

        if launch_tunnels:
            self._tunnels.launch_all(library.tunnel_domains)
        LOGGER.info("Bootstrap completed successfully")
        return AppContext(config=self._config, store=self._store, tunnels=self._tunnels)


def initialize_app(config_path: Path | None = None, *, launch_tunnels: bool = True) -> AppContext:
    """Convenience helper that loads configuration and runs initialization."""

    try:
        config = load_config(config_path=config_path)
    except (OSError, KeyError, ValueError) as error:
        raise BootstrapError(f"Error loading settings: {error}") from error
    return Bootstrapper(config).initialize(launch_tunnels=launch_tunnels)


__all__ = ["AppContext", "BootstrapError", "Bootstrapper", "initialize_app"]
