"""Restore a snapshot into a directory."""

from __future__ import annotations

from pathlib import Path
from typing import List

from ..router import Command, CommandContext, CommandError, parse_options


def _handler(context: CommandContext, args: List[str]) -> str:
    options, positionals = parse_options(
        args,
        value_flags={"-o": "output", "--output": "output"},
        bool_flags={},
    )
    if len(positionals) != 1:
        raise CommandError("Usage: gp checkout SNAPSHOT [-o DIR]")

    output = options.get("output")
    output_dir = Path(output).expanduser() if output else context.project_dir
    result = context.sync_client().checkout(positionals[0], output_dir=output_dir)

    lines = [f"[checkout] Restored snapshot {result.snapshot.id}"]
    if result.snapshot.message:
        lines.append(f"  Message: {result.snapshot.message}")
    lines.append(f"  Files: {len(result.written)}")
    lines.append(f"  Directory: {result.output_dir}")
    return "\n".join(lines)


COMMAND = Command(
    name="checkout",
    description="Restore a snapshot by id or id prefix (most recent match wins).",
    usage="checkout SNAPSHOT [-o DIR]",
    handler=_handler,
    requires_ready=True,
)
