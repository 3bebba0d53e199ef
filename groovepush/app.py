"""Entry point for the ``gp`` command."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .commands import COMMANDS
from .configuration import ConfigurationBundle, load_runtime_configuration
from .errors import GroovePushError
from .logging_utils import setup_logging
from .router import CommandError, CommandRouter
from .sync import BlobStore

logger = logging.getLogger("groovepush")


def build_router(config: ConfigurationBundle, store: Optional[BlobStore] = None) -> CommandRouter:
    router = CommandRouter(config, store=store)
    for command in COMMANDS:
        router.register(command)
    return router


def configure_logging(config: ConfigurationBundle) -> Path:
    logging_config = config.merged.get("logging", {}) if config.merged else {}
    env_level = os.environ.get("GP_LOG_LEVEL")
    level = (env_level or logging_config.get("level") or "WARNING").upper()
    log_path = setup_logging(
        config.home_dir,
        level,
        structured=bool(logging_config.get("structured", False)),
    )
    config.log_path = log_path
    return log_path


def run(
    argv: Sequence[str],
    project_dir: Optional[Path] = None,
    store: Optional[BlobStore] = None,
) -> int:
    """Run one command and return the process exit code."""

    args: List[str] = list(argv)
    if not args or args[0] in {"-h", "--help"}:
        args = ["help"]

    config = load_runtime_configuration(project_dir)
    configure_logging(config)
    # Ready-guarded commands surface the first error to the user.
    for diagnostic in config.diagnostics:
        logger.debug("Configuration %s: %s", diagnostic.level, diagnostic.message)

    router = build_router(config, store=store)
    command, command_args = args[0], args[1:]
    try:
        output = router.handle(command, command_args)
    except CommandError as exc:
        print(f"gp: {exc}", file=sys.stderr)
        return 2
    except GroovePushError as exc:
        logger.debug("Command %s failed", command, exc_info=True)
        print(f"gp {command}: {exc}", file=sys.stderr)
        return 1

    if output:
        print(output)
    return 0


def main() -> None:
    """Entry point for `python -m groovepush` and the `gp` script."""

    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
