"""Push the working tree as a new snapshot."""

from __future__ import annotations

from typing import List

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..router import Command, CommandContext, CommandError, format_size, parse_options, render_rich
from ..sync import PushState

DRY_RUN_PREVIEW_LIMIT = 50


def _handler(context: CommandContext, args: List[str]) -> str:
    """Scan, upload changed files and record a snapshot."""

    options, positionals = parse_options(
        args,
        value_flags={"-m": "message", "--message": "message"},
        bool_flags={"--dry-run": "dry_run"},
    )
    if positionals:
        raise CommandError("Usage: gp push [-m MESSAGE] [--dry-run]")

    client = context.sync_client()
    result = client.push(message=options.get("message"), dry_run=options["dry_run"])

    if result.state is PushState.NO_CHANGES:
        return f"[push] {result.project}: no changed files ({len(result.scanned)} tracked)."

    if result.state is PushState.DRY_RUN:
        def _render(console: Console) -> None:
            console.print(
                f"[bold]Dry run:[/bold] {escape(result.project)}: "
                f"{len(result.changed)} of {len(result.scanned)} files would be uploaded "
                f"({result.changes.summary()})\n"
            )
            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("Path", style="cyan")
            table.add_column("Change")
            table.add_column("Size", justify="right")
            entries = sorted(result.changed, key=lambda entry: entry.relative_path)
            added = {change.path for change in result.changes.added}
            for entry in entries[:DRY_RUN_PREVIEW_LIMIT]:
                table.add_row(
                    escape(entry.relative_path),
                    "new" if entry.relative_path in added else "modified",
                    format_size(entry.size_bytes),
                )
            console.print(table)
            if len(entries) > DRY_RUN_PREVIEW_LIMIT:
                console.print(f"... and {len(entries) - DRY_RUN_PREVIEW_LIMIT} more")

        return render_rich(_render)

    snapshot = result.snapshot
    lines = [
        f"[push] Project: {result.project}",
        f"  Files: {len(result.scanned)} ({format_size(snapshot.meta.total_size_bytes)})",
        f"  Changed: {len(result.changed)}",
        f"  New blobs: {result.uploaded}",
        f"  Snapshot: {snapshot.id}",
    ]
    if snapshot.message:
        lines.append(f"  Message: {snapshot.message}")
    lines.append(f"  Remote: {client.store.describe()}/{result.project}/")
    return "\n".join(lines)


COMMAND = Command(
    name="push",
    description="Upload changed files and record a snapshot.",
    usage="push [-m MESSAGE] [--dry-run]",
    handler=_handler,
    requires_ready=True,
)
