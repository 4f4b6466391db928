from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import List

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from musicshare.config import AppConfig
from musicshare.services.library_config import ConfigStore


class RecordingTunnels:
    """Stand-in for :class:`TunnelSupervisor` that only records launches."""

    def __init__(self) -> None:
        self.launched: List[str] = []
        self._lock = threading.Lock()

    def launch(self, domain: str) -> None:
        with self._lock:
            self.launched.append(domain)

    def launch_all(self, domains) -> None:
        for domain in domains:
            self.launch(domain)


@pytest.fixture()
def app_config(tmp_path: Path) -> AppConfig:
    data_root = tmp_path / "data"
    data_root.mkdir()
    return AppConfig(library_file=data_root / "config.json", port=8080, tunnel_binary="ngrok")


@pytest.fixture()
def store(app_config: AppConfig) -> ConfigStore:
    config_store = ConfigStore.from_app_config(app_config)
    config_store.load()
    return config_store


@pytest.fixture()
def tunnels() -> RecordingTunnels:
    return RecordingTunnels()


@pytest.fixture()
def music_root(tmp_path: Path) -> Path:
    root = tmp_path / "music"
    (root / "Album One").mkdir(parents=True)
    (root / "b-sides").mkdir()
    (root / "a.mp3").write_bytes(b"mp3-data")
    (root / "b.txt").write_text("notes", encoding="utf-8")
    (root / "c.FLAC").write_bytes(b"flac-data")
    (root / "Album One" / "track #1.ogg").write_bytes(b"ogg-data")
    (root / "b-sides" / "demo.wav").write_bytes(b"wav-data")
    (root / "b-sides" / "cover.jpg").write_bytes(b"jpg-data")
    return root
