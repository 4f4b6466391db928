"""Compose the configured directories into a per-request library listing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .library_config import ConfigStore, LibraryConfig
from .scanner import DirectoryUnreadable, FileEntry, LibraryScanner


LOGGER = logging.getLogger(__name__)


@dataclass
class DirectoryListing:
    index: int
    root: str
    files: List[FileEntry] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "path": self.root,
            "error": self.error,
            "files": [
                {"name": entry.display_name, "path": entry.relative_path}
                for entry in self.files
            ],
        }


@dataclass
class LibraryListing:
    directories: List[DirectoryListing] = field(default_factory=list)
    tunnel_domains: Tuple[str, ...] = ()

    @property
    def file_count(self) -> int:
        return sum(len(directory.files) for directory in self.directories)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "directories": [directory.to_dict() for directory in self.directories],
            "ngrok_domains": list(self.tunnel_domains),
            "stats": {
                "directory_count": len(self.directories),
                "file_count": self.file_count,
                "error_count": sum(1 for directory in self.directories if not directory.ok),
            },
        }


class ListingService:
    """Scan every configured directory afresh for each request."""

    def __init__(self, store: ConfigStore, scanner: LibraryScanner | None = None) -> None:
        self._store = store
        self._scanner = scanner or LibraryScanner()

    def build_current(self) -> LibraryListing:
        return self.build_listing(self._store.snapshot())

    def build_listing(self, config: LibraryConfig) -> LibraryListing:
        directories = [
            self._scan_directory(index, root) for index, root in enumerate(config.directories)
        ]
        listing = LibraryListing(directories=directories, tunnel_domains=tuple(config.tunnel_domains))
        LOGGER.debug(
            "Built listing with %s file(s) across %s director%s",
            listing.file_count,
            len(directories),
            "y" if len(directories) == 1 else "ies",
        )
        return listing

    def _scan_directory(self, index: int, root: str) -> DirectoryListing:
        try:
            files = list(self._scanner.scan(root))
        except DirectoryUnreadable as error:
            LOGGER.warning("Skipping unreadable directory %s: %s", root, error.cause)
            return DirectoryListing(index=index, root=root, error=str(error))
        return DirectoryListing(index=index, root=root, files=files)


__all__ = ["DirectoryListing", "LibraryListing", "ListingService"]
