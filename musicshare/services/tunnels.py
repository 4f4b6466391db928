"""Fire-and-forget launcher for the reverse-tunnel binary."""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
from typing import Callable, Iterable, List, Optional

from ..config import AppConfig, DEFAULT_PORT, DEFAULT_TUNNEL_BINARY


LOGGER = logging.getLogger(__name__)


class TunnelLaunchError(RuntimeError):
    """Raised when the tunnel binary could not be started."""


def build_tunnel_command(binary: str, domain: str, port: int) -> List[str]:
    return [binary, "http", f"--domain={domain}", str(port)]


class TunnelSupervisor:
    """Start one tunnel process per domain without tracking it afterwards.

    Each launch runs on its own daemon thread so callers never wait for the
    process to spawn. Failures are logged and otherwise ignored.
    """

    def __init__(
        self,
        *,
        port: int = DEFAULT_PORT,
        binary: str = DEFAULT_TUNNEL_BINARY,
        spawner: Optional[Callable[..., object]] = None,
    ) -> None:
        self._port = port
        self._binary = binary
        self._spawner = spawner or subprocess.Popen

    @classmethod
    def from_app_config(cls, config: AppConfig) -> "TunnelSupervisor":
        return cls(port=config.port, binary=config.tunnel_binary)

    def launch(self, domain: str) -> threading.Thread:
        thread = threading.Thread(
            target=self._run,
            args=(domain,),
            name=f"tunnel-{domain}",
            daemon=True,
        )
        thread.start()
        return thread

    def launch_all(self, domains: Iterable[str]) -> List[threading.Thread]:
        return [self.launch(domain) for domain in domains]

    def _run(self, domain: str) -> None:
        try:
            self._spawn(domain)
        except TunnelLaunchError as error:
            LOGGER.error("%s", error)
        else:
            LOGGER.info("Tunnel is running at domain: %s", domain)

    def _spawn(self, domain: str) -> None:
        command = build_tunnel_command(self._binary, domain, self._port)
        LOGGER.debug("Starting tunnel: %s", " ".join(shlex.quote(part) for part in command))
        try:
            self._spawner(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except (OSError, ValueError) as error:
            raise TunnelLaunchError(
                f"Error starting {self._binary} for domain {domain}: {error}"
            ) from error


__all__ = ["TunnelLaunchError", "TunnelSupervisor", "build_tunnel_command"]
