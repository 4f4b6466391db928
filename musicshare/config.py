"""Configuration loading utilities for the Music Share application."""

from __future__ import annotations

import contextlib
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Tuple


LOGGER = logging.getLogger(__name__)


_PERMISSION_SENTINEL = ".music_share_write_check"

CONFIG_PATH_ENV = "MUSIC_SHARE_CONFIG"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_TUNNEL_BINARY = "ngrok"


def _ensure_writable_directory(path: Path) -> bool:
    """Return ``True`` if *path* can be created and written to."""

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False

    test_file = path / _PERMISSION_SENTINEL
    try:
        with test_file.open("w", encoding="utf-8") as handle:
            handle.write("ok")
    except OSError:
        return False
    finally:
        with contextlib.suppress(OSError):
            test_file.unlink()

    return True


def _select_writable_directory(
    preferred: Path,
    *,
    label: str,
    fallbacks: Iterable[Path] = (),
) -> Tuple[Path, bool]:
    """Return a usable directory based on ``preferred`` and ``fallbacks``.

    The first writable candidate wins and the returned flag tells whether a
    fallback was used. When nothing can be prepared the original ``preferred``
    path is returned so the failure surfaces where the directory is used.
    """

    preferred = preferred.resolve()
    if _ensure_writable_directory(preferred):
        return preferred, False

    for fallback in fallbacks:
        candidate = fallback.resolve()
        if candidate == preferred:
            continue
        if _ensure_writable_directory(candidate):
            LOGGER.warning(
                "Preferred %s directory '%s' is not writable; using fallback '%s'.",
                label,
                preferred,
                candidate,
            )
            return candidate, True

    LOGGER.warning(
        "%s directory '%s' is not writable and no fallback is available.",
        label.capitalize(),
        preferred,
    )
    return preferred, False


@dataclass(frozen=True)
class AppConfig:
    """Runtime settings for the server, independent of the watched library."""

    library_file: Path
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    tunnel_binary: str = DEFAULT_TUNNEL_BINARY

    @property
    def data_root(self) -> Path:
        """Directory holding the library file and the application log."""

        return self.library_file.parent

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any], *, base_path: Path) -> "AppConfig":
        preferred_file = (base_path / mapping["library_file"]).resolve()
        data_root, fallback_used = _select_writable_directory(
            preferred_file.parent,
            label="data",
            fallbacks=(Path.home() / ".music_share",),
        )
        library_file = (data_root / preferred_file.name) if fallback_used else preferred_file

        try:
            port = int(mapping.get("port", DEFAULT_PORT))
        except (TypeError, ValueError) as error:
            raise ValueError(f"Invalid port in configuration: {mapping.get('port')!r}") from error

        return cls(
            library_file=library_file,
            host=str(mapping.get("host") or DEFAULT_HOST),
            port=port,
            tunnel_binary=str(mapping.get("tunnel_binary") or DEFAULT_TUNNEL_BINARY),
        )


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load the application configuration from ``config/default.json`` by default.

    ``MUSIC_SHARE_CONFIG`` points at an alternate settings file when no explicit
    path is given. Relative entries resolve against the project root.
    """

    base_path = Path(__file__).resolve().parent.parent
    if config_path is None:
        override = (os.environ.get(CONFIG_PATH_ENV) or "").strip()
        config_path = Path(override) if override else base_path / "config" / "default.json"

    with config_path.open("r", encoding="utf-8") as config_file:
        raw_config = json.load(config_file)

    return AppConfig.from_mapping(raw_config, base_path=base_path)


__all__ = ["AppConfig", "CONFIG_PATH_ENV", "DEFAULT_PORT", "load_config"]
