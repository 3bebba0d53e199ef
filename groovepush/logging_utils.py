"""Logging helpers for the gp CLI."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys
from typing import List, Union

LOG_SUBPATH = Path("logs") / "gp.log"
STRUCTURED_LOG_SUBPATH = Path("logs") / "gp.jsonl"
MAX_BYTES = 5 * 1024 * 1024  # 5 MB per log segment
BACKUP_COUNT = 3
REPO_ROOT = Path(__file__).resolve().parent.parent
FALLBACK_ROOT = REPO_ROOT / ".groovepush_runtime"
QUIET_LOGGERS = ("dulwich",)


class JSONFormatter(logging.Formatter):
    """One JSON object per record; transfer workers are told apart by thread."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(
    home_dir: Path,
    level: Union[str, int] = logging.WARNING,
    structured: bool = False,
) -> Path:
    """Point the ``groovepush`` logger at ``$GP_HOME/logs``.

    Installs a rotating text log, a terse stderr handler and, when
    ``structured`` is set, a JSON-lines log next to the text one. Calling it
    again replaces the handlers instead of stacking them.

    Returns:
        Path to the text log file.
    """
    log_path = _writable_path(home_dir, LOG_SUBPATH)
    handlers: List[logging.Handler] = [
        _rotating_handler(
            log_path,
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"),
        ),
    ]

    # Command output goes to stdout; only warnings and errors reach stderr.
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("[gp] %(levelname)s: %(message)s"))
    handlers.append(console_handler)

    if structured:
        handlers.append(
            _rotating_handler(_writable_path(home_dir, STRUCTURED_LOG_SUBPATH), JSONFormatter())
        )

    logger = logging.getLogger("groovepush")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(_resolve_level(level))
    for handler in handlers:
        logger.addHandler(handler)
    logger.propagate = False

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return log_path


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.WARNING)
    return int(level)


def _rotating_handler(path: Path, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def _writable_path(home_dir: Path, subpath: Path) -> Path:
    primary = home_dir / subpath
    try:
        primary.parent.mkdir(parents=True, exist_ok=True)
        return primary
    except PermissionError:
        fallback = FALLBACK_ROOT / subpath
        fallback.parent.mkdir(parents=True, exist_ok=True)
        print(
            f"[gp] Unable to write logs under '{home_dir}'; "
            f"falling back to '{fallback.parent}'.",
            file=sys.stderr,
        )
        return fallback


__all__ = ["setup_logging", "JSONFormatter", "LOG_SUBPATH", "STRUCTURED_LOG_SUBPATH", "FALLBACK_ROOT"]
