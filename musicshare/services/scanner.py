"""Directory traversal producing URL-safe audio file entries."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Union
from urllib.parse import quote, unquote, unquote_to_bytes


LOGGER = logging.getLogger(__name__)

AUDIO_EXTENSIONS = frozenset({".mp3", ".wav", ".ogg", ".flac", ".aac"})
_AUDIO_SUFFIXES = tuple(sorted(AUDIO_EXTENSIONS))

PathLike = Union[str, "os.PathLike[str]"]


class DirectoryUnreadable(OSError):
    """Raised when a library directory cannot be traversed."""

    def __init__(self, root: PathLike, cause: OSError) -> None:
        super().__init__(f"Error reading directory {root}: {cause}")
        self.root = str(root)
        self.cause = cause


@dataclass(frozen=True)
class FileEntry:
    display_name: str
    relative_path: str

    @property
    def decoded_path(self) -> str:
        return decode_relative_path(self.relative_path)

    @property
    def display_path(self) -> str:
        """Decoded relative path with undecodable bytes shown as U+FFFD."""

        return unquote(self.relative_path, errors="replace")


def is_audio_file(name: str) -> bool:
    """Return ``True`` when *name* ends in a recognised audio suffix (case-sensitive)."""

    return name.endswith(_AUDIO_SUFFIXES)


def encode_relative_path(relative_path: str) -> str:
    """Percent-encode *relative_path*, keeping ``/`` separators literal.

    The path is encoded from its filesystem bytes, so names that are not valid
    UTF-8 are escaped byte for byte instead of failing.
    """

    return quote(os.fsencode(relative_path.replace(os.sep, "/")), safe=b"/")


def decode_relative_path(value: str) -> str:
    return os.fsdecode(unquote_to_bytes(value))


def display_name_for(name: str) -> str:
    """Return *name* with bytes that are not UTF-8 replaced by U+FFFD."""

    return os.fsencode(name).decode("utf-8", "replace")


class LibraryScanner:
    """Recursively enumerate audio files below a directory root."""

    def scan(self, root: PathLike) -> Iterator[FileEntry]:
        """Return a lazy iterator over the audio files below *root*.

        The root itself is checked before returning so an absent or unreadable
        directory fails immediately. Errors met while walking are raised from
        the iterator as :class:`DirectoryUnreadable`.
        """

        root_path = Path(root)
        try:
            with os.scandir(root_path):
                pass
        except OSError as error:
            raise DirectoryUnreadable(root, error) from error
        return self._walk(root, root_path)

    def _walk(self, root: PathLike, root_path: Path) -> Iterator[FileEntry]:
        def _on_error(error: OSError) -> None:
            raise DirectoryUnreadable(root, error) from error

        for current, dirnames, filenames in os.walk(root_path, onerror=_on_error):
            dirnames.sort()
            for name in sorted(filenames):
                if not is_audio_file(name):
                    continue
                relative = os.path.relpath(os.path.join(current, name), root_path)
                yield FileEntry(
                    display_name=display_name_for(name),
                    relative_path=encode_relative_path(relative),
                )


__all__ = [
    "AUDIO_EXTENSIONS",
    "DirectoryUnreadable",
    "FileEntry",
    "LibraryScanner",
    "decode_relative_path",
    "display_name_for",
    "encode_relative_path",
    "is_audio_file",
]
