"""Blob store contract and the bundled implementations.

Every object lives under a per-project namespace::

    {project}/state            current manifest (JSON path -> hash)
    {project}/history          serialized History
    {project}/blobs/{hash}     file content, addressed by SHA-256
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List

from ..errors import BlobNotFound, InvalidProjectName, RemoteStoreError

logger = logging.getLogger("groovepush.sync.store")


def validate_project_name(name: str) -> str:
    if not name:
        raise InvalidProjectName("Project name must not be empty")
    if ".." in name or "/" in name or "\\" in name:
        raise InvalidProjectName(f"Invalid project name: '{name}'", key=name)
    return name


def state_key(project: str) -> str:
    return f"{project}/state"


def history_key(project: str) -> str:
    return f"{project}/history"


def blob_key(project: str, content_hash: str) -> str:
    return f"{project}/blobs/{content_hash}"


class BlobStore(ABC):
    """Key/value object storage the sync client depends on.

    ``put`` overwrites freely; ``get`` raises :class:`BlobNotFound` for a
    missing key. Any other I/O failure surfaces as :class:`RemoteStoreError`.
    Implementations must be safe to call from several threads at once.
    """

    @abstractmethod
    def put(self, key: str, data: bytes) -> None:
        ...

    @abstractmethod
    def get(self, key: str) -> bytes:
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    def describe(self) -> str:
        return type(self).__name__


class LocalBlobStore(BlobStore):
    """Stores objects as files below ``root/bucket``."""

    def __init__(self, root: Path, bucket: str = "groovepush-bucket"):
        self.root = Path(root).expanduser()
        self.bucket = bucket
        self.base = self.root / bucket

    def _path_for(self, key: str) -> Path:
        parts = key.split("/")
        if not key or any(part in ("", ".", "..") for part in parts):
            raise RemoteStoreError(f"Invalid object key '{key}'", key=key)
        return self.base.joinpath(*parts)

    def put(self, key: str, data: bytes) -> None:
        target = self._path_for(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise RemoteStoreError("Failed to store object", key=key, cause=exc) from exc
        logger.debug("Stored %s (%d bytes)", key, len(data))

    def get(self, key: str) -> bytes:
        target = self._path_for(key)
        try:
            return target.read_bytes()
        except FileNotFoundError as exc:
            raise BlobNotFound(f"Object not found: {key}", key=key) from exc
        except OSError as exc:
            raise RemoteStoreError("Failed to read object", key=key, cause=exc) from exc

    def exists(self, key: str) -> bool:
        target = self._path_for(key)
        try:
            return target.is_file()
        except OSError as exc:
            raise RemoteStoreError("Failed to check object", key=key, cause=exc) from exc

    def describe(self) -> str:
        return str(self.base)


class MemoryBlobStore(BlobStore):
    """In-process store; keeps a log of written keys."""

    def __init__(self) -> None:
        self.objects: Dict[str, bytes] = {}
        self.writes: List[str] = []
        self._lock = threading.Lock()

    def put(self, key: str, data: bytes) -> None:
        with self._lock:
            self.objects[key] = bytes(data)
            self.writes.append(key)

    def get(self, key: str) -> bytes:
        with self._lock:
            try:
                return self.objects[key]
            except KeyError as exc:
                raise BlobNotFound(f"Object not found: {key}", key=key) from exc

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self.objects

    def describe(self) -> str:
        return "memory"


__all__ = [
    "BlobStore",
    "LocalBlobStore",
    "MemoryBlobStore",
    "blob_key",
    "history_key",
    "state_key",
    "validate_project_name",
]
