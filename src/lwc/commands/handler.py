"""Command registration and dispatch.

Player and console commands arrive as raw strings.  They are normalized
(one leading ``/`` removed, surrounding whitespace trimmed), split at the
first space into command name and arguments, and dispatched to the
callback registered for that name.

A callback returns ``True`` when the host event should be cancelled.
Exceptions raised by a callback are wrapped in
:class:`~lwc.core.errors.CommandFailed`; the engine turns those into a
console diagnostic plus a generic message to the sender.
"""
from __future__ import annotations

import enum
import inspect
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from lwc.core.errors import CommandError, CommandFailed, InvalidArgument, UnknownCommand

if TYPE_CHECKING:
    from lwc.core.interfaces import CommandSender


class SenderType(enum.StrEnum):
    """Where a command came from."""

    PLAYER = "player"
    SERVER = "server"


@dataclass(frozen=True, slots=True)
class CommandContext:
    """One command invocation."""

    type: SenderType
    sender: CommandSender
    command: str
    arguments: str = ""

    @property
    def args(self) -> list[str]:
        """Arguments split on whitespace."""
        return self.arguments.split()


CommandCallback = Callable[[CommandContext], bool | Awaitable[bool]]


def normalize_command(message: str) -> str:
    """Make player and console commands look the same.

    Removes one leading ``/`` and trims whitespace.
    """
    if message.startswith("/"):
        message = message[1:]
    return message.strip()


def parse_command(
    sender_type: SenderType, sender: CommandSender, message: str
) -> CommandContext | None:
    """Build a :class:`CommandContext` from a raw message.

    Returns ``None`` for an empty command.
    """
    message = normalize_command(message)
    if not message:
        return None
    command, _, arguments = message.partition(" ")
    return CommandContext(
        type=sender_type, sender=sender, command=command, arguments=arguments.strip()
    )


class CommandHandler:
    """Registry of command callbacks keyed by lower-cased name."""

    def __init__(self) -> None:
        self._commands: dict[str, CommandCallback] = {}
        self._lock = threading.Lock()

    def register(self, name: str, callback: CommandCallback) -> None:
        """Register *callback* for *name*.

        Raises
        ------
        InvalidArgument
            If *name* is empty or already registered.
        """
        key = name.strip().lower()
        if not key:
            raise InvalidArgument("command name cannot be empty")
        with self._lock:
            if key in self._commands:
                raise InvalidArgument(
                    f"Command {key!r} is already registered",
                    details={"command": key},
                )
            self._commands[key] = callback

    def unregister(self, name: str) -> None:
        """Remove the callback for *name*.

        Raises
        ------
        UnknownCommand
            If *name* was never registered.
        """
        key = name.strip().lower()
        with self._lock:
            if self._commands.pop(key, None) is None:
                raise UnknownCommand(f"Unknown command: {key}", details={"command": key})

    def has_command(self, name: str) -> bool:
        return name.strip().lower() in self._commands

    async def handle(self, context: CommandContext) -> bool:
        """Dispatch *context* to its callback.

        Returns the callback's result (``True`` = cancel the host event),
        or ``False`` for commands nobody registered.

        Raises
        ------
        CommandFailed
            If the callback raised.
        """
        callback = self._commands.get(context.command.lower())
        if callback is None:
            return False
        try:
            result = callback(context)
            if inspect.isawaitable(result):
                result = await result
        except CommandError:
            raise
        except Exception as exc:
            raise CommandFailed(
                f"{type(exc).__name__}: {exc}",
                details={
                    "command": context.command,
                    "arguments": context.arguments,
                    "sender": context.sender.name,
                },
            ) from exc
        return bool(result)
