"""Command registry."""

from __future__ import annotations

from .checkout import COMMAND as CHECKOUT_COMMAND
from .clone import COMMAND as CLONE_COMMAND
from .help import COMMAND as HELP_COMMAND
from .init import COMMAND as INIT_COMMAND
from .log import COMMAND as LOG_COMMAND
from .push import COMMAND as PUSH_COMMAND
from .status import COMMAND as STATUS_COMMAND

COMMANDS = [
    PUSH_COMMAND,
    LOG_COMMAND,
    CHECKOUT_COMMAND,
    CLONE_COMMAND,
    INIT_COMMAND,
    STATUS_COMMAND,
    HELP_COMMAND,
]

__all__ = ["COMMANDS"]
