"""Project synchronization for GroovePush."""

from __future__ import annotations

from .manifest import ManifestEntry, Scanner, compute_file_hash, manifest_mapping
from .protocol import ChangeSet, FileChange, SyncAction, describe_changes, diff_entries
from .history import History, Snapshot, SnapshotMeta
from .store import BlobStore, LocalBlobStore, MemoryBlobStore
from .client import (
    CheckoutResult,
    LogReport,
    PushResult,
    PushState,
    StatusReport,
    SyncClient,
    SyncSettings,
    init_project,
    open_blob_store,
)

__all__ = [
    # Manifest
    "ManifestEntry",
    "Scanner",
    "compute_file_hash",
    "manifest_mapping",
    # Protocol
    "ChangeSet",
    "FileChange",
    "SyncAction",
    "describe_changes",
    "diff_entries",
    # History
    "History",
    "Snapshot",
    "SnapshotMeta",
    # Store
    "BlobStore",
    "LocalBlobStore",
    "MemoryBlobStore",
    # Client
    "CheckoutResult",
    "LogReport",
    "PushResult",
    "PushState",
    "StatusReport",
    "SyncClient",
    "SyncSettings",
    "init_project",
    "open_blob_store",
]
