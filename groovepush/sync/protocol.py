"""Change detection between a local scan and the last pushed state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Sequence

from .manifest import ManifestEntry


class SyncAction(str, Enum):
    """How a path differs from the remote state."""
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class FileChange:
    """Represents a change to a single file."""

    path: str
    action: SyncAction
    local_hash: str = ""
    remote_hash: str = ""


@dataclass
class ChangeSet:
    """Human-facing view of how the working tree differs from remote state.

    Removals are listed for display only; pushing never acts on them since
    the persisted state is replaced wholesale.
    """

    added: List[FileChange] = field(default_factory=list)
    modified: List[FileChange] = field(default_factory=list)
    removed: List[FileChange] = field(default_factory=list)

    @property
    def to_upload(self) -> List[FileChange]:
        return self.added + self.modified

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.removed)

    def summary(self) -> str:
        parts = []
        if self.added:
            parts.append(f"{len(self.added)} added")
        if self.modified:
            parts.append(f"{len(self.modified)} modified")
        if self.removed:
            parts.append(f"{len(self.removed)} removed")
        return ", ".join(parts) if parts else "no changes"


def diff_entries(
    local: Sequence[ManifestEntry],
    remote: Mapping[str, str],
) -> List[ManifestEntry]:
    """Return the local entries whose content must be uploaded.

    Only the content hash decides; size is ignored. Paths present remotely
    but missing locally are not reported.
    """
    return [
        entry
        for entry in local
        if remote.get(entry.relative_path) != entry.content_hash
    ]


def describe_changes(
    local: Sequence[ManifestEntry],
    remote: Mapping[str, str],
) -> ChangeSet:
    changes = ChangeSet()
    for entry in diff_entries(local, remote):
        remote_hash = remote.get(entry.relative_path)
        if remote_hash is None:
            changes.added.append(FileChange(
                path=entry.relative_path,
                action=SyncAction.ADD,
                local_hash=entry.content_hash,
            ))
        else:
            changes.modified.append(FileChange(
                path=entry.relative_path,
                action=SyncAction.UPDATE,
                local_hash=entry.content_hash,
                remote_hash=remote_hash,
            ))

    local_paths = {entry.relative_path for entry in local}
    for path in sorted(set(remote) - local_paths):
        changes.removed.append(FileChange(
            path=path,
            action=SyncAction.DELETE,
            remote_hash=remote[path],
        ))
    return changes


__all__ = [
    "ChangeSet",
    "FileChange",
    "SyncAction",
    "describe_changes",
    "diff_entries",
]
