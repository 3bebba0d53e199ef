"""Show the snapshot history of a project."""

from __future__ import annotations

from typing import List

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..router import Command, CommandContext, CommandError, format_size, parse_options, render_rich

DEFAULT_LIMIT = 10


def _handler(context: CommandContext, args: List[str]) -> str:
    """List snapshots, most recent first."""

    options, positionals = parse_options(
        args,
        value_flags={"-n": "limit", "--limit": "limit"},
        bool_flags={},
    )
    if len(positionals) > 1:
        raise CommandError("Usage: gp log [PROJECT] [-n LIMIT]")

    try:
        limit = int(options.get("limit", DEFAULT_LIMIT))
    except ValueError as exc:
        raise CommandError(f"Invalid limit '{options['limit']}'.") from exc

    project = positionals[0] if positionals else None
    report = context.sync_client().log(project=project, limit=limit)

    if not report.snapshots:
        return f"[log] {report.project}: no snapshots yet."

    def _render(console: Console) -> None:
        table = Table(
            title=f"{escape(report.project)} (showing {len(report.snapshots)} of {report.total})",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Snapshot", style="green", no_wrap=True)
        table.add_column("Date (UTC)", no_wrap=True)
        table.add_column("Files", justify="right")
        table.add_column("Changed", justify="right")
        table.add_column("Size", justify="right")
        table.add_column("Message", overflow="ellipsis")

        for snapshot in report.snapshots:
            table.add_row(
                snapshot.id,
                snapshot.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                str(snapshot.meta.file_count),
                str(snapshot.meta.changed_count),
                format_size(snapshot.meta.total_size_bytes),
                escape(snapshot.message or ""),
            )

        console.print(table)

    return render_rich(_render)


COMMAND = Command(
    name="log",
    description="Show snapshot history, most recent first.",
    usage="log [PROJECT] [-n LIMIT]",
    handler=_handler,
    requires_ready=True,
)
