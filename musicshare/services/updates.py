"""Validate and apply configuration updates submitted from the web UI."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from .library_config import ConfigStore
from .tunnels import TunnelSupervisor


LOGGER = logging.getLogger(__name__)


class InvalidDirectory(ValueError):
    """Raised when a submitted directory does not exist on disk."""

    def __init__(self, path: str, cause: Exception | None = None) -> None:
        reason = getattr(cause, "strerror", None)
        detail = f": {reason}" if reason else ""
        super().__init__(f"Directory '{path}' does not exist or cannot be accessed{detail}")
        self.path = path


@dataclass(frozen=True)
class UpdateResult:
    ok: bool
    message: str = ""
    directory_added: bool = False
    domain_added: bool = False

    @property
    def changed(self) -> bool:
        return self.directory_added or self.domain_added


class ConfigUpdateHandler:
    """Apply a directory/domain submission to the store and start new tunnels."""

    def __init__(self, store: ConfigStore, tunnels: TunnelSupervisor | None = None) -> None:
        self._store = store
        self._tunnels = tunnels

    def apply(self, directory: str | None, domain: str | None) -> UpdateResult:
        """Add *directory* and *domain*, skipping whichever is empty.

        Returns a failed :class:`UpdateResult` when the directory does not exist.
        :class:`~musicshare.services.library_config.ConfigSaveError` propagates
        after the store has rolled its in-memory state back.
        """

        directory = directory or ""
        domain = domain or ""
        if not directory.strip():
            directory = ""
        if not domain.strip():
            domain = ""

        if directory:
            try:
                self._validate_directory(directory)
            except InvalidDirectory as error:
                LOGGER.info("Rejected update: %s", error)
                return UpdateResult(ok=False, message=str(error))

        with self._store.transaction() as store:
            directory_added = store.add_directory(directory) if directory else False
            domain_added = store.add_domain(domain) if domain else False
            if directory_added or domain_added:
                store.save()

        if directory_added:
            LOGGER.info("Added library directory %s", directory)
        if domain_added:
            LOGGER.info("Added tunnel domain %s", domain)
            if self._tunnels is not None:
                self._tunnels.launch(domain)

        return UpdateResult(ok=True, directory_added=directory_added, domain_added=domain_added)

    @staticmethod
    def _validate_directory(path: str) -> None:
        try:
            os.stat(path)
        except (OSError, ValueError) as error:
            raise InvalidDirectory(path, error) from error


__all__ = ["ConfigUpdateHandler", "InvalidDirectory", "UpdateResult"]
