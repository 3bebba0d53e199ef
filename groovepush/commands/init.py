"""Initialize GroovePush metadata in the current project."""

from __future__ import annotations

from typing import List

from ..router import Command, CommandContext
from ..sync import init_project


def _handler(context: CommandContext, args: List[str]) -> str:
    created = init_project(context.project_dir)
    if not created:
        return f"[init] Already initialized: {context.project_dir}"
    lines = [f"[init] Initialized GroovePush in {context.project_dir}"]
    lines.extend(f"  created {path.name}" for path in created)
    return "\n".join(lines)


COMMAND = Command(
    name="init",
    description="Create .gp/ and a default .gp-ignore.",
    usage="init",
    handler=_handler,
    requires_ready=True,
)
