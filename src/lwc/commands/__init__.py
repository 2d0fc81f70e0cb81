"""Command dispatch for player and console commands."""
from __future__ import annotations

from lwc.commands.handler import (
    CommandCallback,
    CommandContext,
    CommandHandler,
    SenderType,
    normalize_command,
    parse_command,
)

__all__ = [
    "CommandCallback",
    "CommandContext",
    "CommandHandler",
    "SenderType",
    "normalize_command",
    "parse_command",
]
