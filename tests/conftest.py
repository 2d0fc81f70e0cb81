"""Shared fixtures for LWC tests.

Provides in-memory collaborators, a fully wired engine, and a recording
message sender for assertions on console / actor output.
"""
from __future__ import annotations

from typing import Any

import pytest

from lwc.attributes.registry import AttributeRegistry
from lwc.core.config import EngineConfig
from lwc.core.interfaces import (
    InMemoryConfiguration,
    InMemoryPermissionSource,
    InMemoryProtectionStore,
    InMemoryWorld,
)
from lwc.core.types import Location
from lwc.engine import Engine
from lwc.manager import ProtectionManager

WORLD = "world"


class RecordingSender:
    """Message sink that keeps every formatted message."""

    def __init__(self, name: str = "console") -> None:
        self._name = name
        self.messages: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    def send_message(self, template: str, *args: Any) -> None:
        self.messages.append(template.format(*args) if args else template)


def loc(x: float, y: float, z: float, world: str = WORLD) -> Location:
    return Location(world=world, x=x, y=y, z=z)


# ---------------------------------------------------------------------------
# Collaborator fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def world() -> InMemoryWorld:
    """A world with a double chest, a door, a bed and a lone furnace."""
    w = InMemoryWorld()
    w.set_block(WORLD, 0, 64, 0, "chest", 54)
    w.set_block(WORLD, 1, 64, 0, "chest", 54)
    w.set_block(WORLD, 10, 64, 0, "oak_door", 64)
    w.set_block(WORLD, 10, 65, 0, "oak_door", 64)
    w.set_block(WORLD, 20, 64, 0, "red_bed", 26)
    w.set_block(WORLD, 20, 64, 1, "red_bed", 26)
    w.set_block(WORLD, 30, 64, 0, "furnace", 61)
    return w


@pytest.fixture()
def configuration() -> InMemoryConfiguration:
    return InMemoryConfiguration(
        {
            "protections": {
                "enabled": False,
                "protectables": {
                    "chest": {"enabled": True},
                    "oak_door": {"enabled": "yes"},
                    "red_bed": {"enabled": True},
                    "61": {"enabled": "TRUE"},
                },
            }
        }
    )


@pytest.fixture()
def registry() -> AttributeRegistry:
    return AttributeRegistry()


@pytest.fixture()
def store(registry: AttributeRegistry) -> InMemoryProtectionStore:
    return InMemoryProtectionStore(attributes=registry)


@pytest.fixture()
def console() -> RecordingSender:
    return RecordingSender()


@pytest.fixture()
def permissions() -> InMemoryPermissionSource:
    return InMemoryPermissionSource()


@pytest.fixture()
def engine(
    world: InMemoryWorld,
    configuration: InMemoryConfiguration,
    store: InMemoryProtectionStore,
    console: RecordingSender,
    permissions: InMemoryPermissionSource,
    registry: AttributeRegistry,
) -> Engine:
    return Engine(
        config=EngineConfig(),
        world=world,
        configuration=configuration,
        store=store,
        console=console,
        permissions=permissions,
        attributes=registry,
    )


@pytest.fixture()
def manager(engine: Engine) -> ProtectionManager:
    return engine.manager
