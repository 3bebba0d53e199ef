"""Project scanning and manifest generation."""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Sequence

from dulwich.ignore import IgnoreFilter

from ..errors import DirectoryNotFound, LocalIoError

logger = logging.getLogger("groovepush.sync.manifest")

IGNORE_FILE = ".gp-ignore"
META_DIR = ".gp"
HASH_CHUNK_SIZE = 64 * 1024

# DAW temp/backup files, OS metadata and the tool's own directory.
DEFAULT_IGNORES: Sequence[str] = (
    # Ableton Live
    "*.tmp",
    "Backup/",
    "*.asd",
    # Logic Pro
    "*.autosave",
    # FL Studio
    "*.flpbackup",
    # General
    ".DS_Store",
    "Thumbs.db",
    "*.bak",
    "*.swp",
    # GroovePush metadata
    f"{META_DIR}/",
)


@dataclass(frozen=True)
class ManifestEntry:
    """A single tracked file as seen by one scan."""

    relative_path: str  # POSIX separators, relative to the project root
    content_hash: str  # SHA-256 hex digest
    size_bytes: int


def load_ignore_patterns(root: Path) -> List[str]:
    """Return built-in patterns followed by the project's ignore-file rules."""

    patterns = list(DEFAULT_IGNORES)
    ignore_file = root / IGNORE_FILE
    if not ignore_file.is_file():
        return patterns

    try:
        content = ignore_file.read_text(encoding="utf-8")
    except OSError as exc:
        raise LocalIoError("Failed to read ignore rules", path=ignore_file, cause=exc) from exc

    for line in content.splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            patterns.append(stripped)
    return patterns


class Scanner:
    """Walks a project directory and hashes every tracked file.

    Ignore rules follow gitignore semantics: later patterns override earlier
    ones, so project rules can re-include what the built-in set excludes.
    Excluded directories are pruned from the walk entirely.
    """

    def __init__(self, root: Path):
        root = Path(root)
        if not root.is_dir():
            raise DirectoryNotFound(f"Directory not found: {root}", path=root)

        self.root = root
        self.patterns = load_ignore_patterns(root)
        self._filter = IgnoreFilter([p.encode("utf-8") for p in self.patterns])

    def scan(self) -> List[ManifestEntry]:
        """Scan the project and return one entry per tracked file."""
        entries: List[ManifestEntry] = []
        for file_path, rel_path in self._iter_files():
            entries.append(self._entry_for(file_path, rel_path))

        logger.info("Scanned %s: %d tracked files", self.root, len(entries))
        return entries

    def is_ignored(self, rel_path: str, is_dir: bool = False) -> bool:
        check = rel_path + "/" if is_dir else rel_path
        return self._filter.is_ignored(check) is True

    def _iter_files(self) -> Iterator[tuple[Path, str]]:
        for dirpath, dirnames, filenames in os.walk(self.root, onerror=self._walk_error):
            current = Path(dirpath)
            rel_dir = current.relative_to(self.root).as_posix()
            prefix = "" if rel_dir == "." else rel_dir + "/"

            kept = []
            for name in sorted(dirnames):
                rel = prefix + name
                if rel == META_DIR:
                    continue
                if self.is_ignored(rel, is_dir=True):
                    logger.debug("Pruned ignored directory %s", rel)
                    continue
                kept.append(name)
            dirnames[:] = kept

            for name in sorted(filenames):
                rel = prefix + name
                file_path = current / name
                if not file_path.is_file():
                    continue
                if self.is_ignored(rel):
                    continue
                _check_path_encoding(file_path, rel)
                yield file_path, rel

    def _walk_error(self, exc: OSError) -> None:
        raise LocalIoError("Failed to list directory", path=exc.filename, cause=exc) from exc

    def _entry_for(self, file_path: Path, rel_path: str) -> ManifestEntry:
        try:
            stat = file_path.stat()
            content_hash = compute_file_hash(file_path)
        except OSError as exc:
            raise LocalIoError("Failed to read file", path=file_path, cause=exc) from exc

        return ManifestEntry(
            relative_path=rel_path,
            content_hash=content_hash,
            size_bytes=stat.st_size,
        )


def _check_path_encoding(file_path: Path, rel_path: str) -> None:
    # Paths are persisted as UTF-8 JSON; undecodable names arrive surrogate-escaped.
    try:
        rel_path.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise LocalIoError(
            f"File name is not valid UTF-8: {rel_path.encode('utf-8', 'replace').decode('utf-8')}",
            path=file_path,
            cause=exc,
        ) from exc


def compute_file_hash(file_path: Path) -> str:
    """Compute SHA-256 hash of a file."""
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def compute_bytes_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def manifest_mapping(entries: Iterable[ManifestEntry]) -> Dict[str, str]:
    """Collapse scan output into the path -> hash mapping that gets persisted."""
    return {entry.relative_path: entry.content_hash for entry in entries}


def total_size(entries: Iterable[ManifestEntry]) -> int:
    return sum(entry.size_bytes for entry in entries)


__all__ = [
    "DEFAULT_IGNORES",
    "IGNORE_FILE",
    "META_DIR",
    "ManifestEntry",
    "Scanner",
    "compute_bytes_hash",
    "compute_file_hash",
    "load_ignore_patterns",
    "manifest_mapping",
    "total_size",
]
