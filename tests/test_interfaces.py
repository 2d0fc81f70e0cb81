"""Tests for the collaborator Protocols and their in-memory implementations."""
from __future__ import annotations

import logging

import pytest

from lwc.core.errors import ProtectionExists, ProtectionNotFound, StoreUnavailable
from lwc.core.interfaces import (
    AttributeSource,
    BlockingProtectionStore,
    CommandSender,
    ExecutorProtectionStore,
    InMemoryPermissionSource,
    InMemoryProtectionStore,
    InMemoryWorld,
    LoggingConsole,
    PermissionSource,
    ProtectionStore,
    WorldAccessor,
)
from lwc.core.types import AccessLevel, Actor, BlockPosition, Protection, Role


def _pos(x: int = 0, y: int = 64, z: int = 0) -> BlockPosition:
    return BlockPosition(world="world", x=x, y=y, z=z)


class _BlockingDictStore:
    """Minimal synchronous store used to exercise the executor adapter."""

    def __init__(self) -> None:
        self.records: dict[BlockPosition, Protection] = {}
        self.saves = 0

    def create_protection_record(self, position: BlockPosition, owner: str) -> Protection:
        if position in self.records:
            raise ProtectionExists(f"taken: {position}")
        protection = Protection(protection_id=len(self.records) + 1, position=position, owner=owner)
        self.records[position] = protection
        return protection

    def find_protection_record(self, position: BlockPosition) -> Protection | None:
        return self.records.get(position)

    def save(self, protection: Protection) -> None:
        self.saves += 1
        self.records[protection.position] = protection

    def delete(self, protection: Protection) -> None:
        if self.records.pop(protection.position, None) is None:
            raise ProtectionNotFound("missing")


# ===================================================================
# Protocol conformance
# ===================================================================

class TestProtocolConformance:
    def test_world(self) -> None:
        assert isinstance(InMemoryWorld(), WorldAccessor)

    def test_store(self) -> None:
        assert isinstance(InMemoryProtectionStore(), ProtectionStore)

    def test_executor_store(self) -> None:
        store = ExecutorProtectionStore(_BlockingDictStore(), workers=1)
        try:
            assert isinstance(store, ProtectionStore)
        finally:
            store.close()

    def test_blocking_store(self) -> None:
        assert isinstance(_BlockingDictStore(), BlockingProtectionStore)

    def test_console(self) -> None:
        assert isinstance(LoggingConsole(), CommandSender)

    def test_permission_source(self) -> None:
        assert isinstance(InMemoryPermissionSource(), PermissionSource)

    def test_registry_is_attribute_source(self, registry) -> None:
        assert isinstance(registry, AttributeSource)


# ===================================================================
# InMemoryWorld
# ===================================================================

class TestInMemoryWorld:
    def test_unset_block_is_air(self) -> None:
        block = InMemoryWorld().block_at("world", 5, 5, 5)
        assert block.type_name == "air"
        assert block.type_code == 0
        assert block.position == BlockPosition(world="world", x=5, y=5, z=5)

    def test_set_and_clear(self) -> None:
        world = InMemoryWorld()
        world.set_block("world", 1, 2, 3, "chest", 54)
        block = world.block_at("world", 1, 2, 3)
        assert block.type_name == "chest"
        assert block.match_candidates == ("chest", "54")
        world.clear_block("world", 1, 2, 3)
        assert world.block_at("world", 1, 2, 3).type_name == "air"

    def test_worlds_are_distinct(self) -> None:
        world = InMemoryWorld()
        world.set_block("nether", 0, 0, 0, "chest", 54)
        assert world.block_at("world", 0, 0, 0).type_name == "air"


# ===================================================================
# InMemoryProtectionStore
# ===================================================================

class TestInMemoryProtectionStore:
    @pytest.mark.asyncio
    async def test_create_assigns_ids(self) -> None:
        store = InMemoryProtectionStore()
        first = await store.create_protection_record(_pos(0), "alice")
        second = await store.create_protection_record(_pos(1), "bob")
        assert first.protection_id == 1
        assert second.protection_id == 2
        assert first.owner == "alice"
        assert first.roles == []
        assert len(store) == 2

    @pytest.mark.asyncio
    async def test_duplicate_position_rejected(self) -> None:
        store = InMemoryProtectionStore()
        await store.create_protection_record(_pos(), "alice")
        with pytest.raises(ProtectionExists):
            await store.create_protection_record(_pos(), "bob")

    @pytest.mark.asyncio
    async def test_find_missing_returns_none(self) -> None:
        assert await InMemoryProtectionStore().find_protection_record(_pos()) is None

    @pytest.mark.asyncio
    async def test_changes_invisible_until_saved(self) -> None:
        store = InMemoryProtectionStore()
        protection = await store.create_protection_record(_pos(), "alice")
        protection.add_role(Role.player("bob", AccessLevel.GUEST))

        reloaded = await store.find_protection_record(_pos())
        assert reloaded is not None
        assert reloaded.roles == []

        await store.save(protection)
        reloaded = await store.find_protection_record(_pos())
        assert reloaded is not None
        assert reloaded.roles == [Role.player("bob", AccessLevel.GUEST)]

    @pytest.mark.asyncio
    async def test_save_of_unpersisted_protection_fails(self) -> None:
        store = InMemoryProtectionStore()
        stray = Protection(protection_id=99, position=_pos(), owner="alice")
        with pytest.raises(ProtectionNotFound):
            await store.save(stray)

    @pytest.mark.asyncio
    async def test_save_with_mismatched_id_fails(self) -> None:
        store = InMemoryProtectionStore()
        await store.create_protection_record(_pos(), "alice")
        impostor = Protection(protection_id=42, position=_pos(), owner="mallory")
        with pytest.raises(ProtectionNotFound):
            await store.save(impostor)

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        store = InMemoryProtectionStore()
        protection = await store.create_protection_record(_pos(), "alice")
        await store.delete(protection)
        assert await store.find_protection_record(_pos()) is None
        with pytest.raises(ProtectionNotFound):
            await store.delete(protection)

    @pytest.mark.asyncio
    async def test_unavailable_store_raises(self) -> None:
        store = InMemoryProtectionStore()
        store.set_available(False)
        with pytest.raises(StoreUnavailable):
            await store.find_protection_record(_pos())
        with pytest.raises(StoreUnavailable):
            await store.create_protection_record(_pos(), "alice")


# ===================================================================
# ExecutorProtectionStore
# ===================================================================

class TestExecutorProtectionStore:
    @pytest.mark.asyncio
    async def test_delegates_to_blocking_store(self) -> None:
        backend = _BlockingDictStore()
        store = ExecutorProtectionStore(backend, workers=2)
        try:
            created = await store.create_protection_record(_pos(), "alice")
            assert created.owner == "alice"
            found = await store.find_protection_record(_pos())
            assert found is created
            await store.save(created)
            assert backend.saves == 1
            await store.delete(created)
            assert await store.find_protection_record(_pos()) is None
        finally:
            store.close()

    @pytest.mark.asyncio
    async def test_exceptions_propagate_to_awaiter(self) -> None:
        store = ExecutorProtectionStore(_BlockingDictStore(), workers=1)
        try:
            await store.create_protection_record(_pos(), "alice")
            with pytest.raises(ProtectionExists):
                await store.create_protection_record(_pos(), "bob")
        finally:
            store.close()


# ===================================================================
# LoggingConsole / InMemoryPermissionSource
# ===================================================================

class TestLoggingConsole:
    def test_formats_template(self, caplog: pytest.LogCaptureFixture) -> None:
        console = LoggingConsole()
        with caplog.at_level(logging.INFO, logger="lwc.console"):
            console.send_message("Failed to {0} at {1}", "create", "here")
        assert "Failed to create at here" in caplog.text
        assert console.name == "console"

    def test_template_without_args_is_verbatim(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="lwc.console"):
            LoggingConsole().send_message("literal {braces}")
        assert "literal {braces}" in caplog.text


class TestInMemoryPermissionSource:
    def test_grant_and_revoke(self) -> None:
        source = InMemoryPermissionSource()
        alice = Actor(name="Alice")
        assert source.has_permission(alice, "lwc.use") is False
        source.grant("alice", "LWC.Use")
        assert source.has_permission(alice, "lwc.use") is True
        source.revoke("ALICE", "lwc.use")
        assert source.has_permission(alice, "lwc.use") is False

    def test_wildcard_grants_everything(self) -> None:
        source = InMemoryPermissionSource()
        source.grant("root", "*")
        assert source.has_permission(Actor(name="root"), "anything.at.all")


# ===================================================================
# ExecutorProtectionStore driver failures
# ===================================================================

class _FailingDriverStore:
    """Blocking store whose driver fails every call."""

    def create_protection_record(self, position: BlockPosition, owner: str) -> Protection:
        raise OSError("disk I/O error")

    def find_protection_record(self, position: BlockPosition) -> Protection | None:
        raise OSError("disk I/O error")

    def save(self, protection: Protection) -> None:
        raise OSError("disk I/O error")

    def delete(self, protection: Protection) -> None:
        raise OSError("disk I/O error")


class TestExecutorDriverErrors:
    @pytest.mark.asyncio
    async def test_driver_error_becomes_store_unavailable(self) -> None:
        store = ExecutorProtectionStore(_FailingDriverStore(), workers=1)
        try:
            with pytest.raises(StoreUnavailable) as exc_info:
                await store.find_protection_record(_pos())
        finally:
            store.close()
        err = exc_info.value
        assert "OSError: disk I/O error" in err.message
        assert err.details["operation"] == "find_protection_record"
        assert isinstance(err.__cause__, OSError)

    @pytest.mark.asyncio
    async def test_every_operation_is_wrapped(self) -> None:
        store = ExecutorProtectionStore(_FailingDriverStore(), workers=1)
        stray = Protection(protection_id=1, position=_pos(), owner="alice")
        try:
            with pytest.raises(StoreUnavailable):
                await store.create_protection_record(_pos(), "alice")
            with pytest.raises(StoreUnavailable):
                await store.save(stray)
            with pytest.raises(StoreUnavailable):
                await store.delete(stray)
        finally:
            store.close()
