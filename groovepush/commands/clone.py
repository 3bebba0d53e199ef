"""Clone the latest snapshot of a project into a new directory."""

from __future__ import annotations

from typing import List

from ..router import Command, CommandContext, CommandError


def _handler(context: CommandContext, args: List[str]) -> str:
    if len(args) != 1 or args[0].startswith("-"):
        raise CommandError("Usage: gp clone PROJECT")

    result = context.sync_client().clone(args[0], parent_dir=context.project_dir)

    lines = [
        f"[clone] Cloned {result.project} at snapshot {result.snapshot.id}",
        f"  Files: {len(result.written)}",
        f"  Directory: {result.output_dir}",
    ]
    return "\n".join(lines)


COMMAND = Command(
    name="clone",
    description="Materialize a project's latest snapshot into ./PROJECT.",
    usage="clone PROJECT",
    handler=_handler,
    requires_ready=True,
)
