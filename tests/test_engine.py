"""Tests for the engine composition root and the command boundary."""
from __future__ import annotations

import logging

import pytest

from conftest import RecordingSender, loc
from lwc.attributes import AttributeRegistry
from lwc.commands import CommandContext, CommandHandler, SenderType, normalize_command, parse_command
from lwc.core.config import EngineConfig
from lwc.core.errors import CommandFailed, InvalidArgument, ProtectionNotFound, UnknownCommand
from lwc.core.interfaces import (
    ExecutorProtectionStore,
    InMemoryConfiguration,
    InMemoryWorld,
    LoggingConsole,
)
from lwc.core.types import BlockPosition, Protection
from lwc.engine import Engine
from lwc.manager import ProtectionManager


class _BlockingStore:
    def __init__(self) -> None:
        self.records: dict[BlockPosition, Protection] = {}

    def create_protection_record(self, position: BlockPosition, owner: str) -> Protection:
        protection = Protection(protection_id=len(self.records) + 1, position=position, owner=owner)
        self.records[position] = protection
        return protection.model_copy(deep=True)

    def find_protection_record(self, position: BlockPosition) -> Protection | None:
        found = self.records.get(position)
        return found.model_copy(deep=True) if found is not None else None

    def save(self, protection: Protection) -> None:
        if protection.position not in self.records:
            raise ProtectionNotFound("missing")
        self.records[protection.position] = protection.model_copy(deep=True)

    def delete(self, protection: Protection) -> None:
        if self.records.pop(protection.position, None) is None:
            raise ProtectionNotFound("missing")


# ===================================================================
# Composition
# ===================================================================

class TestComposition:
    def test_components_exposed(self, engine: Engine, registry: AttributeRegistry) -> None:
        assert isinstance(engine.manager, ProtectionManager)
        assert isinstance(engine.commands, CommandHandler)
        assert engine.attributes is registry
        assert engine.config.admin_permission == "lwc.admin"
        assert engine.matcher.rules

    def test_builtin_attributes_registered(self, engine: Engine) -> None:
        assert "expiry" in engine.attributes
        assert "access_counter" in engine.attributes

    def test_registry_created_when_omitted(self, world: InMemoryWorld) -> None:
        engine = Engine(
            config=EngineConfig(strict_attribute_registration=True),
            world=world,
            configuration=InMemoryConfiguration(),
            store=_BlockingStore(),
            console=LoggingConsole(),
        )
        try:
            assert engine.attributes.strict is True
            assert engine.attributes.names() == ["access_counter", "expiry"]
        finally:
            engine.close()

    @pytest.mark.asyncio
    async def test_blocking_store_runs_on_executor(
        self, world: InMemoryWorld, configuration: InMemoryConfiguration
    ) -> None:
        backend = _BlockingStore()
        engine = Engine(
            config=EngineConfig(store_workers=2),
            world=world,
            configuration=configuration,
            store=backend,
            console=LoggingConsole(),
        )
        try:
            assert isinstance(engine.store, ExecutorProtectionStore)
            created = await engine.manager.create_protection("alice", loc(0, 64, 0))
            assert created is not None
            assert BlockPosition(world="world", x=0, y=64, z=0) in backend.records
            found = await engine.manager.find_protection(loc(1, 64, 0))
            assert found is not None
            assert found.owner == "alice"
        finally:
            engine.close()


# ===================================================================
# Parsing
# ===================================================================

class TestParsing:
    def test_normalize(self) -> None:
        assert normalize_command("/lwc info ") == "lwc info"
        assert normalize_command("  cprivate") == "cprivate"
        assert normalize_command("//double") == "/double"

    def test_parse_splits_at_first_space(self) -> None:
        sender = RecordingSender("alice")
        context = parse_command(SenderType.PLAYER, sender, "/cmodify  bob  -carol")
        assert context is not None
        assert context.command == "cmodify"
        assert context.arguments == "bob  -carol"
        assert context.args == ["bob", "-carol"]
        assert context.type is SenderType.PLAYER

    def test_parse_without_arguments(self) -> None:
        context = parse_command(SenderType.SERVER, RecordingSender(), "lwc")
        assert context is not None
        assert context.arguments == ""

    @pytest.mark.parametrize("message", ["", "/", "   ", "/  "])
    def test_parse_empty(self, message: str) -> None:
        assert parse_command(SenderType.PLAYER, RecordingSender(), message) is None


# ===================================================================
# Registration
# ===================================================================

class TestCommandRegistration:
    def test_duplicate_name_rejected(self) -> None:
        handler = CommandHandler()
        handler.register("lwc", lambda ctx: True)
        with pytest.raises(InvalidArgument):
            handler.register("LWC", lambda ctx: True)

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(InvalidArgument):
            CommandHandler().register(" ", lambda ctx: True)

    def test_unregister(self) -> None:
        handler = CommandHandler()
        handler.register("lwc", lambda ctx: True)
        handler.unregister("LWC")
        assert handler.has_command("lwc") is False
        with pytest.raises(UnknownCommand):
            handler.unregister("lwc")

    @pytest.mark.asyncio
    async def test_callback_errors_are_wrapped(self) -> None:
        def broken(ctx: CommandContext) -> bool:
            raise ValueError("bad input")

        handler = CommandHandler()
        handler.register("broken", broken)
        context = parse_command(SenderType.PLAYER, RecordingSender("alice"), "/broken x")
        assert context is not None
        with pytest.raises(CommandFailed) as exc_info:
            await handler.handle(context)
        assert exc_info.value.details["sender"] == "alice"
        assert isinstance(exc_info.value.__cause__, ValueError)


# ===================================================================
# Dispatch through the engine
# ===================================================================

class TestProcessCommand:
    @pytest.mark.asyncio
    async def test_dispatch_and_cancel(self, engine: Engine) -> None:
        seen: list[CommandContext] = []

        def callback(ctx: CommandContext) -> bool:
            seen.append(ctx)
            return True

        engine.commands.register("cprivate", callback)
        sender = RecordingSender("alice")
        assert await engine.process_command(SenderType.PLAYER, sender, " /CPrivate ") is True
        assert len(seen) == 1
        assert seen[0].sender is sender
        assert seen[0].command == "CPrivate"

    @pytest.mark.asyncio
    async def test_console_and_player_commands_look_alike(self, engine: Engine) -> None:
        seen: list[SenderType] = []

        async def callback(ctx: CommandContext) -> bool:
            seen.append(ctx.type)
            return False

        engine.commands.register("lwc", callback)
        assert await engine.process_command(SenderType.PLAYER, RecordingSender("a"), "/lwc") is False
        assert await engine.process_command(SenderType.SERVER, RecordingSender(), "lwc") is False
        assert seen == [SenderType.PLAYER, SenderType.SERVER]

    @pytest.mark.asyncio
    async def test_unknown_command_not_cancelled(self, engine: Engine) -> None:
        sender = RecordingSender("alice")
        assert await engine.process_command(SenderType.PLAYER, sender, "/nothing") is False
        assert sender.messages == []

    @pytest.mark.asyncio
    async def test_empty_message(self, engine: Engine) -> None:
        assert await engine.process_command(SenderType.PLAYER, RecordingSender(), "/") is False

    @pytest.mark.asyncio
    async def test_failing_command_reports(
        self,
        engine: Engine,
        console: RecordingSender,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        def broken(ctx: CommandContext) -> bool:
            raise RuntimeError("boom")

        engine.commands.register("broken", broken)
        sender = RecordingSender("alice")
        with caplog.at_level(logging.ERROR, logger="lwc.engine"):
            cancelled = await engine.process_command(SenderType.PLAYER, sender, "/broken")
        assert cancelled is False
        assert console.messages == [
            "An error was encountered while processing a command: RuntimeError: boom"
        ]
        assert sender.messages == ["[LWC] An internal error occurred while processing this command"]
        assert "Command from alice failed" in caplog.text

    @pytest.mark.asyncio
    async def test_commands_can_use_manager(self, engine: Engine) -> None:
        async def protect(ctx: CommandContext) -> bool:
            created = await engine.manager.create_protection(ctx.sender.name, loc(0, 64, 0))
            return created is not None

        engine.commands.register("cprivate", protect)
        assert await engine.process_command(SenderType.PLAYER, RecordingSender("alice"), "/cprivate")
        found = await engine.manager.find_protection(loc(1, 64, 0))
        assert found is not None
        assert found.owner == "alice"
