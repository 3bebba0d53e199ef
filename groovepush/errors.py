"""Failure taxonomy shared by the scanner, stores and sync client."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional, Union


class ErrorKind(str, Enum):
    """Closed set of failure kinds callers can match on."""

    DIRECTORY_NOT_FOUND = "directory_not_found"
    BLOB_NOT_FOUND = "blob_not_found"
    SNAPSHOT_NOT_FOUND = "snapshot_not_found"
    HISTORY_NOT_FOUND = "history_not_found"
    REMOTE_STORE = "remote_store"
    LOCAL_IO = "local_io"
    DESTINATION_EXISTS = "destination_exists"
    INVALID_PROJECT_NAME = "invalid_project_name"
    INVALID_CONFIGURATION = "invalid_configuration"


class GroovePushError(Exception):
    """Base class for every error raised by the core."""

    kind: ErrorKind

    def __init__(
        self,
        message: str,
        *,
        path: Optional[Union[str, Path]] = None,
        key: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = Path(path) if path is not None else None
        self.key = key
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class DirectoryNotFound(GroovePushError):
    kind = ErrorKind.DIRECTORY_NOT_FOUND


class BlobNotFound(GroovePushError):
    kind = ErrorKind.BLOB_NOT_FOUND


class SnapshotNotFound(GroovePushError):
    kind = ErrorKind.SNAPSHOT_NOT_FOUND


class HistoryNotFound(GroovePushError):
    kind = ErrorKind.HISTORY_NOT_FOUND


class RemoteStoreError(GroovePushError):
    kind = ErrorKind.REMOTE_STORE


class LocalIoError(GroovePushError):
    kind = ErrorKind.LOCAL_IO


class DestinationExists(GroovePushError):
    kind = ErrorKind.DESTINATION_EXISTS


class InvalidProjectName(GroovePushError):
    kind = ErrorKind.INVALID_PROJECT_NAME


class ConfigurationError(GroovePushError):
    kind = ErrorKind.INVALID_CONFIGURATION


__all__ = [
    "BlobNotFound",
    "ConfigurationError",
    "DestinationExists",
    "DirectoryNotFound",
    "ErrorKind",
    "GroovePushError",
    "HistoryNotFound",
    "InvalidProjectName",
    "LocalIoError",
    "RemoteStoreError",
    "SnapshotNotFound",
]
