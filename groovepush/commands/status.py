"""Compare the working tree with the last pushed state."""

from __future__ import annotations

from typing import List

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..router import Command, CommandContext, format_size, render_rich

PREVIEW_LIMIT = 10


def _handler(context: CommandContext, args: List[str]) -> str:
    report = context.sync_client().status()
    changes = report.changes

    def _render(console: Console) -> None:
        table = Table(title="Project Status", show_header=False)
        table.add_column("Property", style="bold")
        table.add_column("Value")

        table.add_row("Project", escape(report.project))
        table.add_row("Local files", str(report.file_count))
        table.add_row("Total size", format_size(report.total_size_bytes))
        if not report.pushed:
            table.add_row("Remote", "not pushed yet")
        else:
            table.add_row("Head", report.head or "(none)")
            table.add_row("Changes", changes.summary())
        console.print(table)

        if not report.pushed:
            return

        for label, style, marker, items in (
            ("Added", "green", "+", changes.added),
            ("Modified", "yellow", "~", changes.modified),
            ("Removed", "red", "-", changes.removed),
        ):
            if not items:
                continue
            console.print(f"[{style}]{label}:[/{style}]")
            for change in items[:PREVIEW_LIMIT]:
                console.print(f"  {marker} {escape(change.path)}")
            if len(items) > PREVIEW_LIMIT:
                console.print(f"  ... and {len(items) - PREVIEW_LIMIT} more")

    return render_rich(_render)


COMMAND = Command(
    name="status",
    description="Show local files and changes since the last push.",
    usage="status",
    handler=_handler,
    requires_ready=True,
)
