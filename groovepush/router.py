"""Command registry and rendering helpers for the gp CLI."""

from __future__ import annotations

from dataclasses import dataclass
from io import StringIO
import shutil
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from rich.console import Console
from rich.table import Table

from .configuration import ConfigurationBundle
from .errors import ConfigurationError
from .sync import BlobStore, SyncClient, SyncSettings, open_blob_store

CommandHandler = Callable[["CommandContext", List[str]], str]


class CommandError(Exception):
    """Bad invocation of a command (unknown name, malformed arguments)."""


@dataclass
class CommandContext:
    """Context passed into each command handler."""

    config: ConfigurationBundle
    router: "CommandRouter"

    @property
    def project_dir(self) -> Path:
        return self.config.project_dir

    def sync_client(self, project_dir: Optional[Path] = None) -> SyncClient:
        settings = SyncSettings.from_config(self.config.merged)
        return SyncClient(
            project_dir or self.config.project_dir,
            settings,
            self.router.blob_store(),
        )


@dataclass
class Command:
    """Metadata about a CLI command."""

    name: str
    description: str
    handler: CommandHandler
    usage: str = ""
    requires_ready: bool = False


class CommandRouter:
    """Registry + dispatcher for commands."""

    def __init__(
        self,
        config: ConfigurationBundle,
        store: Optional[BlobStore] = None,
    ) -> None:
        self.config = config
        self._store = store
        self._commands: Dict[str, Command] = {}

    def register(self, command: Command) -> None:
        self._commands[command.name.lower()] = command

    def blob_store(self) -> BlobStore:
        """Store shared by every command run through this router."""
        if self._store is None:
            self._store = open_blob_store(SyncSettings.from_config(self.config.merged))
        return self._store

    def handle(self, command_name: str, args: List[str]) -> str:
        command = self._commands.get(command_name.lower())
        if command is None:
            raise CommandError(
                f"Unknown command '{command_name}'. Run 'gp help' for usage."
            )
        if command.requires_ready and self.config.status != "ready":
            raise ConfigurationError(_not_ready_message(self.config))
        context = CommandContext(config=self.config, router=self)
        return command.handler(context, args)

    @property
    def command_names(self) -> Sequence[str]:
        return sorted(self._commands.keys())

    def commands(self) -> Sequence[Command]:
        return [self._commands[name] for name in self.command_names]


def _not_ready_message(config: ConfigurationBundle) -> str:
    errors = [diag.message for diag in config.diagnostics if diag.level == "error"]
    detail = errors[0].splitlines()[0] if errors else "no details"
    return f"Configuration is {config.status}: {detail}"


def render_help_table(commands: Sequence[Command]) -> str:
    """Render a help table listing commands."""

    def _render(console: Console) -> None:
        table = Table(title="gp commands", show_header=True, header_style="bold cyan")
        table.add_column("Command", style="green", no_wrap=True)
        table.add_column("Description")
        for cmd in commands:
            table.add_row(cmd.usage or cmd.name, cmd.description)
        console.print(table)

    return render_rich(_render)


def render_rich(render_fn: Callable[[Console], None]) -> str:
    """Render a Rich layout to an ANSI string without printing live."""

    terminal_size = shutil.get_terminal_size(fallback=(80, 24))
    # Clamp to a reasonable minimum so Rich does not choke on ultra-small widths.
    width = max(20, terminal_size.columns)
    height = max(10, terminal_size.lines)

    console = Console(
        record=True,
        force_terminal=True,
        color_system="auto",
        width=width,
        height=height,
        file=StringIO(),
    )
    render_fn(console)
    return console.export_text(clear=False, styles=True)


def format_size(size: int) -> str:
    """Format file size in human-readable form."""
    if size < 1024:
        return f"{size} B"
    elif size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    elif size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.2f} MB"
    else:
        return f"{size / (1024 * 1024 * 1024):.2f} GB"


def parse_options(
    args: Sequence[str],
    value_flags: Dict[str, str],
    bool_flags: Dict[str, str],
) -> tuple[Dict[str, Any], List[str]]:
    """Split ``args`` into named options and positionals.

    ``value_flags`` / ``bool_flags`` map each spelling (``-n``, ``--limit``)
    to an option name.
    """
    options: Dict[str, Any] = {name: False for name in bool_flags.values()}
    positionals: List[str] = []

    i = 0
    while i < len(args):
        arg = args[i]
        if arg in value_flags:
            if i + 1 >= len(args):
                raise CommandError(f"Option '{arg}' expects a value.")
            options[value_flags[arg]] = args[i + 1]
            i += 2
        elif arg in bool_flags:
            options[bool_flags[arg]] = True
            i += 1
        elif arg.startswith("-") and arg != "-":
            raise CommandError(f"Unknown option '{arg}'.")
        else:
            positionals.append(arg)
            i += 1
    return options, positionals


__all__ = [
    "Command",
    "CommandContext",
    "CommandError",
    "CommandRouter",
    "format_size",
    "parse_options",
    "render_help_table",
    "render_rich",
]
