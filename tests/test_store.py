"""Tests for the bundled blob stores."""

from __future__ import annotations

from pathlib import Path

import pytest

from groovepush.errors import (
    BlobNotFound,
    ConfigurationError,
    InvalidProjectName,
    RemoteStoreError,
)
from groovepush.sync.client import SyncSettings, open_blob_store
from groovepush.sync.store import (
    LocalBlobStore,
    MemoryBlobStore,
    blob_key,
    history_key,
    state_key,
    validate_project_name,
)


def test_keys_are_namespaced_per_project():
    assert state_key("song") == "song/state"
    assert history_key("song") == "song/history"
    assert blob_key("song", "ab12") == "song/blobs/ab12"


def test_local_store_put_get_and_overwrite(tmp_path: Path):
    store = LocalBlobStore(tmp_path, bucket="bucket")

    assert not store.exists("song/blobs/ab")
    store.put("song/blobs/ab", b"one")
    assert store.exists("song/blobs/ab")
    assert store.get("song/blobs/ab") == b"one"
    assert (tmp_path / "bucket" / "song" / "blobs" / "ab").read_bytes() == b"one"

    store.put("song/blobs/ab", b"two")
    assert store.get("song/blobs/ab") == b"two"


def test_local_store_missing_key_raises_not_found(tmp_path: Path):
    store = LocalBlobStore(tmp_path)

    with pytest.raises(BlobNotFound) as excinfo:
        store.get("song/state")

    assert excinfo.value.key == "song/state"


@pytest.mark.parametrize("key", ["", "../escape", "song//state", "song/./state"])
def test_local_store_rejects_unsafe_keys(tmp_path: Path, key: str):
    store = LocalBlobStore(tmp_path)

    with pytest.raises(RemoteStoreError):
        store.put(key, b"data")


def test_memory_store_records_writes():
    store = MemoryBlobStore()
    store.put("a", b"1")
    store.put("a", b"2")

    assert store.get("a") == b"2"
    assert store.writes == ["a", "a"]
    with pytest.raises(BlobNotFound):
        store.get("b")


@pytest.mark.parametrize("name", ["", "../etc", "foo/bar", "foo\\bar"])
def test_validate_project_name_rejects_unsafe_names(name: str):
    with pytest.raises(InvalidProjectName):
        validate_project_name(name)


def test_validate_project_name_accepts_plain_names():
    assert validate_project_name("my-project_123") == "my-project_123"


def test_open_blob_store_selects_backend(tmp_path: Path):
    local = open_blob_store(SyncSettings(backend="local", storage_root=str(tmp_path), bucket="b"))
    memory = open_blob_store(SyncSettings(backend="memory"))

    assert isinstance(local, LocalBlobStore)
    assert local.base == tmp_path / "b"
    assert isinstance(memory, MemoryBlobStore)
    with pytest.raises(ConfigurationError):
        open_blob_store(SyncSettings(backend="s4"))


def test_local_exists_wraps_os_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    store = LocalBlobStore(tmp_path)

    def denied(self):
        raise PermissionError("denied")

    monkeypatch.setattr(Path, "is_file", denied)

    with pytest.raises(RemoteStoreError) as excinfo:
        store.exists(blob_key("song", "ab" * 32))

    assert excinfo.value.key == blob_key("song", "ab" * 32)
    assert isinstance(excinfo.value.cause, PermissionError)
