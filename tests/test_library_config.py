from __future__ import annotations

import json
from pathlib import Path

import pytest

from musicshare.services import library_config as library_config_module
from musicshare.services.library_config import (
    ConfigLoadError,
    ConfigSaveError,
    ConfigStore,
    LibraryConfig,
)


def test_load_creates_empty_baseline_when_missing(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    store = ConfigStore(path)

    config = store.load()

    assert config == LibraryConfig()
    assert json.loads(path.read_text(encoding="utf-8")) == {
        "directories": [],
        "ngrok_domains": [],
    }


def test_saved_file_uses_two_space_indentation(store: ConfigStore) -> None:
    store.add_directory("/music")
    store.save()

    text = store.path.read_text(encoding="utf-8")
    assert '\n  "directories": [\n    "/music"\n  ],' in text
    assert '"ngrok_domains": []' in text


def test_round_trip_after_additions(store: ConfigStore) -> None:
    for directory in ("/music", "/podcasts", "/music/live"):
        store.add_directory(directory)
        store.save()
    store.add_domain("tunes.example.app")
    store.save()

    reloaded = ConfigStore(store.path).load()

    assert reloaded == store.snapshot()
    assert reloaded.directories == ["/music", "/podcasts", "/music/live"]
    assert reloaded.tunnel_domains == ["tunes.example.app"]


def test_add_is_idempotent(store: ConfigStore) -> None:
    assert store.add_directory("/music") is True
    assert store.add_directory("/music") is False
    assert store.add_domain("a.example") is True
    assert store.add_domain("a.example") is False

    snapshot = store.snapshot()
    assert snapshot.directories == ["/music"]
    assert snapshot.tunnel_domains == ["a.example"]


def test_uniqueness_uses_exact_string_comparison(store: ConfigStore) -> None:
    assert store.add_directory("/music") is True
    assert store.add_directory("/music/") is True

    assert store.snapshot().directories == ["/music", "/music/"]


def test_snapshot_is_a_copy(store: ConfigStore) -> None:
    snapshot = store.snapshot()
    snapshot.directories.append("/elsewhere")

    assert store.snapshot().directories == []


def test_load_rejects_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigLoadError) as excinfo:
        ConfigStore(path).load()

    assert "parsing" in str(excinfo.value)


def test_load_rejects_file_that_is_not_utf8(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_bytes(b'{"directories": ["/m\xe9"]}')

    with pytest.raises(ConfigLoadError) as excinfo:
        ConfigStore(path).load()

    assert "parsing" in str(excinfo.value)


def test_load_rejects_wrong_shape(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"directories": "/music"}), encoding="utf-8")

    with pytest.raises(ConfigLoadError):
        ConfigStore(path).load()


def test_load_accepts_missing_keys(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"directories": ["/music"]}), encoding="utf-8")

    config = ConfigStore(path).load()

    assert config.directories == ["/music"]
    assert config.tunnel_domains == []


def test_load_reports_unreadable_file(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.mkdir()

    with pytest.raises(ConfigLoadError) as excinfo:
        ConfigStore(path).load()

    assert "reading" in str(excinfo.value)


def test_save_retries_once(store: ConfigStore, monkeypatch: pytest.MonkeyPatch) -> None:
    original = store._write_atomic
    calls = []

    def flaky(data: str) -> None:
        calls.append(data)
        if len(calls) == 1:
            raise OSError("disk hiccup")
        original(data)

    monkeypatch.setattr(store, "_write_atomic", flaky)
    store.add_directory("/music")
    store.save()

    assert len(calls) == 2
    assert ConfigStore(store.path).load().directories == ["/music"]


def test_save_failure_leaves_previous_file(store: ConfigStore, monkeypatch: pytest.MonkeyPatch) -> None:
    before = store.path.read_bytes()

    def failing_replace(src, dst):
        raise OSError("read-only filesystem")

    monkeypatch.setattr(library_config_module.os, "replace", failing_replace)
    store.add_directory("/music")

    with pytest.raises(ConfigSaveError):
        store.save()

    assert store.path.read_bytes() == before
    assert [p.name for p in store.path.parent.iterdir()] == [store.path.name]


def test_transaction_rolls_back_on_error(store: ConfigStore) -> None:
    store.add_directory("/music")

    with pytest.raises(RuntimeError):
        with store.transaction() as locked:
            locked.add_directory("/podcasts")
            locked.add_domain("a.example")
            raise RuntimeError("boom")

    snapshot = store.snapshot()
    assert snapshot.directories == ["/music"]
    assert snapshot.tunnel_domains == []
