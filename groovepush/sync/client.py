"""Sync client: push, checkout and clone against a blob store."""

from __future__ import annotations

import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from ..errors import (
    BlobNotFound,
    ConfigurationError,
    DestinationExists,
    DirectoryNotFound,
    GroovePushError,
    HistoryNotFound,
    LocalIoError,
    RemoteStoreError,
    SnapshotNotFound,
)
from .history import History, Snapshot
from .manifest import (
    IGNORE_FILE,
    META_DIR,
    ManifestEntry,
    Scanner,
    compute_bytes_hash,
    manifest_mapping,
    total_size,
)
from .protocol import ChangeSet, describe_changes, diff_entries
from .store import (
    BlobStore,
    LocalBlobStore,
    MemoryBlobStore,
    blob_key,
    history_key,
    state_key,
    validate_project_name,
)

logger = logging.getLogger("groovepush.sync.client")

T = TypeVar("T")

DEFAULT_BUCKET = "groovepush-bucket"
DEFAULT_STORAGE_ROOT = "~/.groovepush/remote"
DEFAULT_MAX_WORKERS = 8

DEFAULT_IGNORE_FILE_CONTENT = """# GroovePush ignore rules
# DAW temp files and backups

# Ableton Live
*.tmp
Backup/
*.asd

# Logic Pro
*.autosave

# FL Studio
*.flpbackup

# General temp files
.DS_Store
Thumbs.db
*.bak
"""


class PushState(str, Enum):
    """Stages a push moves through; the last one reached is reported."""
    IDLE = "idle"
    SCANNING = "scanning"
    DIFFING = "diffing"
    NO_CHANGES = "no_changes"
    DRY_RUN = "dry_run"
    UPLOADING = "uploading"
    PERSISTING_STATE = "persisting_state"
    APPENDING_SNAPSHOT = "appending_snapshot"
    DONE = "done"


@dataclass
class SyncSettings:
    """Settings for sync operations."""

    backend: str = "local"  # local, memory
    storage_root: str = DEFAULT_STORAGE_ROOT
    bucket: str = DEFAULT_BUCKET
    max_workers: int = DEFAULT_MAX_WORKERS

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "SyncSettings":
        storage = config.get("storage", {}) if config else {}
        transfer = config.get("transfer", {}) if config else {}
        max_workers = int(transfer.get("max_workers", DEFAULT_MAX_WORKERS))
        return cls(
            backend=str(storage.get("backend", "local")),
            storage_root=str(storage.get("root", DEFAULT_STORAGE_ROOT)),
            bucket=str(storage.get("bucket", DEFAULT_BUCKET)),
            max_workers=max(1, max_workers),
        )


def open_blob_store(settings: SyncSettings) -> BlobStore:
    """Build the store named by ``settings.backend``."""
    if settings.backend == "local":
        return LocalBlobStore(Path(settings.storage_root), settings.bucket)
    if settings.backend == "memory":
        return MemoryBlobStore()
    raise ConfigurationError(f"Unknown storage backend '{settings.backend}'")


def project_name_for(path: Path) -> str:
    """Project name is the base name of the canonical project directory."""
    return Path(path).resolve().name or "unnamed_project"


@dataclass
class PushResult:
    """Result of a push."""

    project: str
    state: PushState
    scanned: List[ManifestEntry] = field(default_factory=list)
    changed: List[ManifestEntry] = field(default_factory=list)
    changes: ChangeSet = field(default_factory=ChangeSet)
    uploaded: int = 0
    snapshot: Optional[Snapshot] = None

    @property
    def dry_run(self) -> bool:
        return self.state is PushState.DRY_RUN


@dataclass
class CheckoutResult:
    """Files materialized from a snapshot."""

    project: str
    snapshot: Snapshot
    output_dir: Path
    written: List[Path] = field(default_factory=list)


@dataclass
class StatusReport:
    project: str
    file_count: int
    total_size_bytes: int
    pushed: bool
    changes: ChangeSet
    head: Optional[str] = None


@dataclass
class LogReport:
    project: str
    total: int
    snapshots: List[Snapshot] = field(default_factory=list)


class SyncClient:
    """Drives push/checkout/clone for one project against a blob store.

    The store handle is supplied by the caller; the client keeps no global
    connection state.
    """

    def __init__(
        self,
        project_dir: Path,
        settings: SyncSettings,
        store: BlobStore,
        progress_callback: Optional[Callable[[str, int, int], None]] = None,
    ):
        self.project_dir = Path(project_dir)
        self.settings = settings
        self.store = store
        self.progress_callback = progress_callback

    @property
    def project_name(self) -> str:
        return validate_project_name(project_name_for(self.project_dir))

    # ------------------------------------------------------------------
    # Remote state and history

    def load_remote_state(self, project: str) -> Dict[str, str]:
        """Return the last pushed manifest, or an empty mapping if never pushed."""
        try:
            raw = self.store.get(state_key(project))
        except BlobNotFound:
            logger.info("No remote state for %s", project)
            return {}
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise RemoteStoreError(
                "Remote state is not valid JSON", key=state_key(project), cause=exc
            ) from exc
        return {str(path): str(digest) for path, digest in data.items()}

    def save_remote_state(self, project: str, state: Mapping[str, str]) -> None:
        body = json.dumps(dict(state), indent=2, sort_keys=True, ensure_ascii=False)
        self.store.put(state_key(project), body.encode("utf-8"))
        logger.debug("Saved remote state for %s (%d files)", project, len(state))

    def load_history(self, project: str) -> Optional[History]:
        try:
            raw = self.store.get(history_key(project))
        except BlobNotFound:
            return None
        try:
            return History.from_json(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError, KeyError, TypeError) as exc:
            raise RemoteStoreError(
                "Remote history is unreadable", key=history_key(project), cause=exc
            ) from exc

    def require_history(self, project: str) -> History:
        history = self.load_history(project)
        if history is None:
            raise HistoryNotFound(
                f"No history found for project '{project}'", key=history_key(project)
            )
        return history

    def save_history(self, history: History) -> None:
        self.store.put(history_key(history.project_name), history.to_json().encode("utf-8"))
        logger.debug("Saved history for %s (head %s)", history.project_name, history.head)

    # ------------------------------------------------------------------
    # Operations

    def scan(self) -> List[ManifestEntry]:
        return Scanner(self.project_dir).scan()

    def push(
        self,
        message: Optional[str] = None,
        dry_run: bool = False,
        now: Optional[datetime] = None,
    ) -> PushResult:
        """Upload changed files and record a new snapshot."""
        root = self.project_dir.resolve()
        project = validate_project_name(project_name_for(root))
        result = PushResult(project=project, state=PushState.IDLE)

        self._enter(result, PushState.SCANNING)
        result.scanned = Scanner(root).scan()
        remote_state = self.load_remote_state(project)

        self._enter(result, PushState.DIFFING)
        result.changed = diff_entries(result.scanned, remote_state)
        result.changes = describe_changes(result.scanned, remote_state)
        if not result.changed:
            self._enter(result, PushState.NO_CHANGES)
            return result

        if dry_run:
            self._enter(result, PushState.DRY_RUN)
            return result

        self._enter(result, PushState.UPLOADING)
        uploads = [self._upload_task(root, project, entry) for entry in result.changed]
        outcomes = self._run_transfers("Uploading", uploads)
        result.uploaded = sum(1 for uploaded in outcomes if uploaded)

        self._enter(result, PushState.PERSISTING_STATE)
        self.save_remote_state(project, manifest_mapping(result.scanned))

        self._enter(result, PushState.APPENDING_SNAPSHOT)
        history = self.load_history(project) or History.new(project)
        created_at = now or datetime.now(timezone.utc)
        snapshot = Snapshot.create(
            files=manifest_mapping(result.scanned),
            parent_id=history.head,
            total_size_bytes=total_size(result.scanned),
            changed_count=len(result.changed),
            message=message,
            now=created_at,
            snapshot_id=history.next_snapshot_id(created_at),
        )
        history.add_snapshot(snapshot)
        self.save_history(history)
        result.snapshot = snapshot

        self._enter(result, PushState.DONE)
        logger.info(
            "Pushed %s: snapshot %s (%d changed, %d new blobs)",
            project,
            snapshot.id,
            len(result.changed),
            result.uploaded,
        )
        return result

    def checkout(
        self,
        ref: str,
        output_dir: Optional[Path] = None,
        project: Optional[str] = None,
    ) -> CheckoutResult:
        """Restore the snapshot matching ``ref`` (exact id or prefix)."""
        project = validate_project_name(project or self.project_name)
        history = self.require_history(project)
        snapshot = history.resolve(ref)
        target = Path(output_dir) if output_dir is not None else self.project_dir
        return self._materialize(project, snapshot, target)

    def clone(self, project: str, parent_dir: Optional[Path] = None) -> CheckoutResult:
        """Materialize the latest snapshot of ``project`` into a new directory."""
        project = validate_project_name(project)
        target = Path(parent_dir if parent_dir is not None else self.project_dir) / project
        if target.exists():
            raise DestinationExists(f"Destination already exists: {target}", path=target)

        history = self.require_history(project)
        snapshot = history.latest_snapshot()
        if snapshot is None:
            raise SnapshotNotFound(f"Project '{project}' has no snapshots", key=project)

        try:
            target.mkdir(parents=True)
        except OSError as exc:
            raise LocalIoError("Failed to create clone directory", path=target, cause=exc) from exc

        result = self._materialize(project, snapshot, target)
        try:
            (target / META_DIR).mkdir(exist_ok=True)
        except OSError as exc:
            raise LocalIoError("Failed to create metadata directory", path=target, cause=exc) from exc
        return result

    def status(self) -> StatusReport:
        project = self.project_name
        scanned = self.scan()
        remote_state = self.load_remote_state(project)
        history = self.load_history(project)
        return StatusReport(
            project=project,
            file_count=len(scanned),
            total_size_bytes=total_size(scanned),
            pushed=bool(remote_state),
            changes=describe_changes(scanned, remote_state),
            head=history.head if history else None,
        )

    def log(self, project: Optional[str] = None, limit: int = 10) -> LogReport:
        project = validate_project_name(project or self.project_name)
        history = self.require_history(project)
        recent = list(reversed(history.snapshots))[: max(0, limit)]
        return LogReport(project=project, total=len(history), snapshots=recent)

    # ------------------------------------------------------------------
    # Transfers

    def _upload_task(self, root: Path, project: str, entry: ManifestEntry) -> Callable[[], bool]:
        def _upload() -> bool:
            key = blob_key(project, entry.content_hash)
            if self.store.exists(key):
                logger.debug("Blob already stored: %s", entry.relative_path)
                return False

            source = root / entry.relative_path
            try:
                data = source.read_bytes()
            except OSError as exc:
                raise LocalIoError("Failed to read file for upload", path=source, cause=exc) from exc
            if compute_bytes_hash(data) != entry.content_hash:
                raise LocalIoError("File changed while pushing", path=source)

            self.store.put(key, data)
            logger.debug("Uploaded: %s", entry.relative_path)
            return True

        return _upload

    def _download_task(
        self,
        project: str,
        output_dir: Path,
        relative_path: str,
        content_hash: str,
    ) -> Callable[[], Path]:
        def _download() -> Path:
            target = _safe_target(output_dir, relative_path)
            data = self.store.get(blob_key(project, content_hash))
            if compute_bytes_hash(data) != content_hash:
                raise RemoteStoreError(
                    f"Content hash mismatch for {relative_path}",
                    key=blob_key(project, content_hash),
                )
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)
            except OSError as exc:
                raise LocalIoError("Failed to write file", path=target, cause=exc) from exc
            logger.debug("Restored: %s", relative_path)
            return target

        return _download

    def _materialize(self, project: str, snapshot: Snapshot, output_dir: Path) -> CheckoutResult:
        downloads = [
            self._download_task(project, output_dir, path, digest)
            for path, digest in sorted(snapshot.files.items())
        ]
        written = self._run_transfers("Restoring", downloads)
        logger.info(
            "Restored %s snapshot %s into %s (%d files)",
            project,
            snapshot.id,
            output_dir,
            len(written),
        )
        return CheckoutResult(
            project=project,
            snapshot=snapshot,
            output_dir=output_dir,
            written=written,
        )

    def _run_transfers(self, label: str, tasks: Sequence[Callable[[], T]]) -> List[T]:
        """Run ``tasks`` on a bounded pool and wait for every one of them.

        The first failure is raised only after all tasks have finished, so no
        caller ever proceeds while transfers are still in flight.
        """
        if not tasks:
            return []

        results: List[T] = []
        errors: List[GroovePushError] = []
        workers = min(self.settings.max_workers, len(tasks))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="gp-transfer") as pool:
            futures: List[Future] = [pool.submit(task) for task in tasks]
            for done, future in enumerate(as_completed(futures), 1):
                try:
                    results.append(future.result())
                except GroovePushError as exc:
                    logger.error("%s failed: %s", label, exc)
                    errors.append(exc)
                self._report_progress(label, done, len(futures))

        if errors:
            raise errors[0]
        return results

    def _enter(self, result: PushResult, state: PushState) -> None:
        result.state = state
        logger.debug("Push %s: %s", result.project, state.value)

    def _report_progress(self, message: str, current: int, total: int) -> None:
        """Report progress if callback is configured."""
        if self.progress_callback:
            self.progress_callback(message, current, total)
        logger.debug("Transfer progress: %s (%d/%d)", message, current, total)


def _safe_target(output_dir: Path, relative_path: str) -> Path:
    rel = PurePosixPath(relative_path)
    if rel.is_absolute() or ".." in rel.parts or not rel.parts:
        raise LocalIoError(f"Refusing to write outside the output directory: {relative_path}")
    return Path(output_dir).joinpath(*rel.parts)


def init_project(root: Path) -> List[Path]:
    """Create the metadata directory and a default ignore file."""
    root = Path(root)
    if not root.is_dir():
        raise DirectoryNotFound(f"Directory not found: {root}", path=root)

    created: List[Path] = []
    meta_dir = root / META_DIR
    ignore_file = root / IGNORE_FILE
    try:
        if not meta_dir.exists():
            meta_dir.mkdir()
            created.append(meta_dir)
        if not ignore_file.exists():
            ignore_file.write_text(DEFAULT_IGNORE_FILE_CONTENT, encoding="utf-8")
            created.append(ignore_file)
    except OSError as exc:
        raise LocalIoError("Failed to initialize project", path=root, cause=exc) from exc

    logger.info("Initialized %s (%d paths created)", root, len(created))
    return created


__all__ = [
    "CheckoutResult",
    "LogReport",
    "PushResult",
    "PushState",
    "StatusReport",
    "SyncClient",
    "SyncSettings",
    "init_project",
    "open_blob_store",
    "project_name_for",
]
