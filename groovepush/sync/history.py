"""Snapshot history for a project.

A history is a single chain: every snapshot names the previous head as its
parent, and :meth:`History.add_snapshot` is the only way to grow it. Nothing
is ever edited or removed once appended.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from ..errors import SnapshotNotFound

logger = logging.getLogger("groovepush.sync.history")

HISTORY_VERSION = 1
SNAPSHOT_ID_FORMAT = "%Y%m%dT%H%M%SZ"
_FRACTION = re.compile(r"\.(\d+)")


def generate_snapshot_id(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime(SNAPSHOT_ID_FORMAT)


def _parse_timestamp(raw: str) -> datetime:
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    # fromisoformat only accepts 3 or 6 fractional digits before 3.11
    raw = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), raw)
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class SnapshotMeta:
    """Advisory counters recorded with each snapshot."""

    file_count: int
    total_size_bytes: int
    changed_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_count": self.file_count,
            "total_size_bytes": self.total_size_bytes,
            "changed_count": self.changed_count,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SnapshotMeta":
        return cls(
            file_count=int(data.get("file_count", 0)),
            # Older writers used "total_size".
            total_size_bytes=int(data.get("total_size_bytes", data.get("total_size", 0))),
            changed_count=int(data.get("changed_count", 0)),
        )


@dataclass(frozen=True)
class Snapshot:
    """An immutable, self-describing point in a project's history."""

    id: str
    created_at: datetime
    files: Dict[str, str]
    meta: SnapshotMeta
    parent_id: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def create(
        cls,
        files: Mapping[str, str],
        parent_id: Optional[str],
        total_size_bytes: int,
        changed_count: int,
        message: Optional[str] = None,
        now: Optional[datetime] = None,
        snapshot_id: Optional[str] = None,
    ) -> "Snapshot":
        created_at = now or datetime.now(timezone.utc)
        return cls(
            id=snapshot_id or generate_snapshot_id(created_at),
            created_at=created_at,
            files=dict(files),
            meta=SnapshotMeta(
                file_count=len(files),
                total_size_bytes=total_size_bytes,
                changed_count=changed_count,
            ),
            parent_id=parent_id,
            message=message,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "message": self.message,
            "files": dict(self.files),
            "parent_id": self.parent_id,
            "meta": self.meta.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Snapshot":
        return cls(
            id=str(data["id"]),
            created_at=_parse_timestamp(str(data["created_at"])),
            files={str(k): str(v) for k, v in (data.get("files") or {}).items()},
            meta=SnapshotMeta.from_dict(data.get("meta") or {}),
            parent_id=data.get("parent_id"),
            message=data.get("message"),
        )


@dataclass
class History:
    """Ordered chain of snapshots for one project, plus its head."""

    project_name: str
    version: int = HISTORY_VERSION
    _snapshots: List[Snapshot] = field(default_factory=list, repr=False)

    @classmethod
    def new(cls, project_name: str) -> "History":
        return cls(project_name=project_name)

    @property
    def snapshots(self) -> Tuple[Snapshot, ...]:
        return tuple(self._snapshots)

    @property
    def head(self) -> Optional[str]:
        return self._snapshots[-1].id if self._snapshots else None

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[Snapshot]:
        return iter(self._snapshots)

    def add_snapshot(self, snapshot: Snapshot) -> None:
        """Append ``snapshot`` and make it the head."""
        self._snapshots.append(snapshot)
        logger.debug("History %s advanced to %s", self.project_name, snapshot.id)

    def next_snapshot_id(self, moment: datetime) -> str:
        """Timestamp id for ``moment``, suffixed ``-2``, ``-3``... if already taken."""
        base = generate_snapshot_id(moment)
        taken = {snapshot.id for snapshot in self._snapshots}
        candidate = base
        counter = 2
        while candidate in taken:
            candidate = f"{base}-{counter}"
            counter += 1
        return candidate

    def find_snapshot(self, snapshot_id: str) -> Optional[Snapshot]:
        for snapshot in self._snapshots:
            if snapshot.id == snapshot_id:
                return snapshot
        return None

    def find_snapshot_by_prefix(self, prefix: str) -> Optional[Snapshot]:
        """Most recent snapshot whose id starts with ``prefix``."""
        for snapshot in reversed(self._snapshots):
            if snapshot.id.startswith(prefix):
                return snapshot
        return None

    def resolve(self, ref: str) -> Snapshot:
        """Look up ``ref`` as an exact id, then as a prefix."""
        snapshot = self.find_snapshot(ref) or self.find_snapshot_by_prefix(ref)
        if snapshot is None:
            raise SnapshotNotFound(f"Snapshot not found: {ref}", key=ref)
        return snapshot

    def latest_snapshot(self) -> Optional[Snapshot]:
        return self._snapshots[-1] if self._snapshots else None

    def ancestry(self, snapshot_id: str) -> List[Snapshot]:
        """Follow parent links from ``snapshot_id`` back to the root."""
        chain: List[Snapshot] = []
        current = self.find_snapshot(snapshot_id)
        if current is None:
            raise SnapshotNotFound(f"Snapshot not found: {snapshot_id}", key=snapshot_id)
        while current is not None:
            chain.append(current)
            current = self.find_snapshot(current.parent_id) if current.parent_id else None
        return chain

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "project_name": self.project_name,
            "head": self.head,
            "snapshots": [snapshot.to_dict() for snapshot in self._snapshots],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "History":
        history = cls(
            project_name=str(data["project_name"]),
            version=int(data.get("version", HISTORY_VERSION)),
        )
        for raw in data.get("snapshots") or []:
            history.add_snapshot(Snapshot.from_dict(raw))

        stored_head = data.get("head")
        if stored_head != history.head:
            logger.warning(
                "Stored head %s for %s does not match chain tail %s",
                stored_head,
                history.project_name,
                history.head,
            )
        return history

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> "History":
        return cls.from_dict(json.loads(text))


__all__ = [
    "HISTORY_VERSION",
    "History",
    "SNAPSHOT_ID_FORMAT",
    "Snapshot",
    "SnapshotMeta",
    "generate_snapshot_id",
]
