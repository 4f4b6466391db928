from __future__ import annotations

import os
from pathlib import Path

import pytest

from musicshare.services.library_config import ConfigStore, LibraryConfig
from musicshare.services.listing import ListingService


def test_missing_directory_degrades_to_inline_error(music_root: Path, tmp_path: Path) -> None:
    missing = tmp_path / "gone"
    config = LibraryConfig(directories=[str(music_root), str(missing)], tunnel_domains=["a.example"])

    listing = ListingService(ConfigStore(tmp_path / "unused.json")).build_listing(config)

    assert [item.root for item in listing.directories] == [str(music_root), str(missing)]
    first, second = listing.directories
    assert first.ok
    assert [entry.display_name for entry in first.files] == ["a.mp3", "track #1.ogg", "demo.wav"]
    assert not second.ok
    assert second.files == []
    assert str(missing) in second.error
    assert listing.tunnel_domains == ("a.example",)


def test_error_directory_does_not_hide_later_ones(music_root: Path, tmp_path: Path) -> None:
    config = LibraryConfig(directories=[str(tmp_path / "gone"), str(music_root)])

    listing = ListingService(ConfigStore(tmp_path / "unused.json")).build_listing(config)

    assert [item.ok for item in listing.directories] == [False, True]
    assert [item.index for item in listing.directories] == [0, 1]
    assert listing.file_count == 3


def test_build_current_rescans_every_time(store: ConfigStore, music_root: Path) -> None:
    store.add_directory(str(music_root))
    service = ListingService(store)

    assert service.build_current().file_count == 3

    (music_root / "new.aac").write_bytes(b"aac")
    assert service.build_current().file_count == 4


def test_to_dict_shape(store: ConfigStore, music_root: Path) -> None:
    store.add_directory(str(music_root))
    store.add_domain("tunes.example.app")

    payload = ListingService(store).build_current().to_dict()

    assert payload["ngrok_domains"] == ["tunes.example.app"]
    assert payload["stats"] == {"directory_count": 1, "file_count": 3, "error_count": 0}
    directory = payload["directories"][0]
    assert directory["path"] == str(music_root)
    assert directory["error"] is None
    assert directory["files"][1] == {
        "name": "track #1.ogg",
        "path": "Album%20One/track%20%231.ogg",
    }


def test_empty_configuration_builds_empty_listing(store: ConfigStore) -> None:
    listing = ListingService(store).build_current()

    assert listing.directories == []
    assert listing.tunnel_domains == ()


def test_name_that_is_not_utf8_does_not_break_other_directories(
    music_root: Path, tmp_path: Path
) -> None:
    latin1 = tmp_path / "latin1"
    latin1.mkdir()
    try:
        with open(os.path.join(os.fsencode(latin1), b"caf\xe9.mp3"), "wb") as handle:
            handle.write(b"latin1")
    except (OSError, UnicodeError):
        pytest.skip("filesystem does not accept names that are not UTF-8")
    config = LibraryConfig(directories=[str(music_root), str(latin1)])

    listing = ListingService(ConfigStore(tmp_path / "unused.json")).build_listing(config)

    assert [item.ok for item in listing.directories] == [True, True]
    assert listing.directories[1].files[0].relative_path == "caf%E9.mp3"
    assert listing.file_count == 4
