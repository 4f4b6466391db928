"""Persistence for the watched directories and tunnel domains."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List

from ..config import AppConfig


LOGGER = logging.getLogger(__name__)

_DIRECTORIES_KEY = "directories"
_DOMAINS_KEY = "ngrok_domains"


class ConfigLoadError(RuntimeError):
    """Raised when the persisted library file cannot be read or parsed."""


class ConfigSaveError(RuntimeError):
    """Raised when the library file could not be written."""


@dataclass
class LibraryConfig:
    """Ordered, duplicate-free lists of directories and tunnel domains."""

    directories: List[str] = field(default_factory=list)
    tunnel_domains: List[str] = field(default_factory=list)

    def copy(self) -> "LibraryConfig":
        return LibraryConfig(list(self.directories), list(self.tunnel_domains))

    def to_payload(self) -> Dict[str, List[str]]:
        return {
            _DIRECTORIES_KEY: list(self.directories),
            _DOMAINS_KEY: list(self.tunnel_domains),
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "LibraryConfig":
        if not isinstance(payload, dict):
            raise ValueError("Library file must contain a JSON object")

        def _strings(key: str) -> List[str]:
            values = payload.get(key)
            if values is None:
                return []
            if not isinstance(values, list) or not all(isinstance(item, str) for item in values):
                raise ValueError(f"'{key}' must be a list of strings")
            ordered: List[str] = []
            for item in values:
                if item not in ordered:
                    ordered.append(item)
            return ordered

        return cls(directories=_strings(_DIRECTORIES_KEY), tunnel_domains=_strings(_DOMAINS_KEY))


def serialize_config(config: LibraryConfig) -> str:
    """Return the canonical on-disk representation of *config*."""

    return json.dumps(config.to_payload(), indent=2, ensure_ascii=False) + "\n"


class ConfigStore:
    """Lock-guarded owner of the in-memory :class:`LibraryConfig`.

    Every read goes through :meth:`snapshot` and every mutation holds the same
    re-entrant lock, so listings never observe a half-applied update. Use
    :meth:`transaction` to keep the lock across an add-then-save sequence.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.RLock()
        self._config = LibraryConfig()

    @classmethod
    def from_app_config(cls, config: AppConfig) -> "ConfigStore":
        return cls(config.library_file)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> LibraryConfig:
        with self._lock:
            if not self._path.exists():
                LOGGER.info("No library file at %s; creating an empty one", self._path)
                self._config = LibraryConfig()
                self.save()
                return self._config.copy()

            try:
                raw = self._path.read_bytes()
            except OSError as error:
                raise ConfigLoadError(f"Error reading library file {self._path}: {error}") from error

            try:
                config = LibraryConfig.from_payload(json.loads(raw.decode("utf-8")))
            except ValueError as error:
                raise ConfigLoadError(f"Error parsing library file {self._path}: {error}") from error

            self._config = config
            LOGGER.info(
                "Loaded %s director%s and %s tunnel domain(s) from %s",
                len(config.directories),
                "y" if len(config.directories) == 1 else "ies",
                len(config.tunnel_domains),
                self._path,
            )
            return config.copy()

    def save(self, config: LibraryConfig | None = None) -> None:
        """Write the configuration atomically, retrying once on I/O failure."""

        with self._lock:
            if config is not None:
                self._config = config.copy()
            data = serialize_config(self._config)
            try:
                self._write_atomic(data)
            except OSError as first_error:
                LOGGER.warning("Writing %s failed (%s); retrying once", self._path, first_error)
                try:
                    self._write_atomic(data)
                except OSError as error:
                    raise ConfigSaveError(f"Error writing library file {self._path}: {error}") from error
            LOGGER.debug("Saved library file %s", self._path)

    def _write_atomic(self, data: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        handle, temp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
        )
        try:
            with os.fdopen(handle, "w", encoding="utf-8") as stream:
                stream.write(data)
                stream.flush()
                os.fsync(stream.fileno())
            os.replace(temp_name, self._path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(temp_name)
            raise

    def snapshot(self) -> LibraryConfig:
        with self._lock:
            return self._config.copy()

    def add_directory(self, path: str) -> bool:
        with self._lock:
            if path in self._config.directories:
                return False
            self._config.directories.append(path)
            return True

    def add_domain(self, domain: str) -> bool:
        with self._lock:
            if domain in self._config.tunnel_domains:
                return False
            self._config.tunnel_domains.append(domain)
            return True

    @contextlib.contextmanager
    def transaction(self) -> Iterator["ConfigStore"]:
        """Hold the lock for a block of mutations; roll back if the block raises."""

        with self._lock:
            previous = self._config.copy()
            try:
                yield self
            except BaseException:
                self._config = previous
                raise


__all__ = [
    "ConfigLoadError",
    "ConfigSaveError",
    "ConfigStore",
    "LibraryConfig",
    "serialize_config",
]
