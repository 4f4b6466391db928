"""Core services backing the music library server."""

from .library_config import ConfigLoadError, ConfigSaveError, ConfigStore, LibraryConfig
from .listing import DirectoryListing, LibraryListing, ListingService
from .scanner import (
    AUDIO_EXTENSIONS,
    DirectoryUnreadable,
    FileEntry,
    LibraryScanner,
    decode_relative_path,
    encode_relative_path,
    is_audio_file,
)
from .tunnels import TunnelLaunchError, TunnelSupervisor
from .updates import ConfigUpdateHandler, InvalidDirectory, UpdateResult

__all__ = [
    "AUDIO_EXTENSIONS",
    "ConfigLoadError",
    "ConfigSaveError",
    "ConfigStore",
    "ConfigUpdateHandler",
    "DirectoryListing",
    "DirectoryUnreadable",
    "FileEntry",
    "InvalidDirectory",
    "LibraryConfig",
    "LibraryListing",
    "LibraryScanner",
    "ListingService",
    "TunnelLaunchError",
    "TunnelSupervisor",
    "UpdateResult",
    "decode_relative_path",
    "encode_relative_path",
    "is_audio_file",
]
