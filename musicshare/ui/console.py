"""Plain-text rendering of the library listing for the command line."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from ..services.listing import DirectoryListing, LibraryListing


@dataclass
class ConsoleSection:
    title: str
    entries: Iterable[str]


class ConsoleUI:
    """Minimal console UI that prints every configured directory and its files."""

    def __init__(self, listing: LibraryListing, *, echo: Callable[[str], None] = print) -> None:
        self._listing = listing
        self._echo = echo

    def run(self) -> None:
        """Render the listing, one section per directory."""

        self._echo("Music Share - Library Overview")
        self._echo("=" * 40)
        if not self._listing.directories:
            self._echo("No directories configured.")
            self._echo("")
        for section in self._build_sections():
            self._echo(section.title)
            self._echo("-" * len(section.title))
            has_entries = False
            for entry in section.entries:
                has_entries = True
                self._echo(entry)
            if not has_entries:
                self._echo("(empty)")
            self._echo("")

        domains = ", ".join(self._listing.tunnel_domains) or "none"
        self._echo(f"Tunnel domains: {domains}")
        self._echo(f"Audio files: {self._listing.file_count}")

    def _build_sections(self) -> Iterable[ConsoleSection]:
        for directory in self._listing.directories:
            yield ConsoleSection(
                title=f"[{directory.index}] {directory.root}",
                entries=self._format_files(directory),
            )

    @staticmethod
    def _format_files(directory: DirectoryListing) -> Iterable[str]:
        if directory.error is not None:
            yield f"  ! {directory.error}"
            return
        for entry in directory.files:
            yield f"  {entry.display_path}"


__all__ = ["ConsoleUI"]
