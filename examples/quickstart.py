#!/usr/bin/env python3
"""LWC quickstart -- protect a double chest.

Demonstrates the core workflow of the protection engine:

1. Create an engine with in-memory collaborators.
2. Place a double chest and check it is protectable.
3. Protect it for its owner through a registered command.
4. Grant a friend guest access.
5. Check access from both halves of the chest.
6. Remove the protection by breaking the governing block.

Run:
    python examples/quickstart.py
"""
from __future__ import annotations

import asyncio
import logging

from lwc import AccessLevel, Actor, Engine, EngineConfig, Location, Role, SenderType
from lwc.attributes import AttributeRegistry
from lwc.commands import CommandContext
from lwc.core.interfaces import (
    InMemoryConfiguration,
    InMemoryPermissionSource,
    InMemoryProtectionStore,
    InMemoryWorld,
    LoggingConsole,
)


class PrintingPlayer:
    """A player that prints whatever the engine tells it."""

    def __init__(self, name: str) -> None:
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def send_message(self, template: str, *args: object) -> None:
        print(f"    -> {self._name}: {template.format(*args)}")


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format="    %(name)s: %(message)s")

    # -- Step 1: Create the engine -------------------------------------------
    world = InMemoryWorld()
    registry = AttributeRegistry()
    engine = Engine(
        config=EngineConfig(),
        world=world,
        configuration=InMemoryConfiguration(
            {"protections": {"enabled": False, "protectables": {"chest": {"enabled": True}}}}
        ),
        store=InMemoryProtectionStore(attributes=registry),
        console=LoggingConsole(),
        permissions=InMemoryPermissionSource(),
        attributes=registry,
    )
    print("[1] Engine created")

    # -- Step 2: Place a double chest ----------------------------------------
    left = world.set_block("world", 0, 64, 0, "chest", 54)
    world.set_block("world", 1, 64, 0, "chest", 54)
    print(f"[2] Chest protectable: {engine.manager.is_block_protectable(left)}")

    # -- Step 3: Protect it through a command --------------------------------
    target = Location(world="world", x=0.5, y=64.0, z=0.5)

    async def cprivate(ctx: CommandContext) -> bool:
        protection = await engine.manager.create_protection(ctx.sender.name, target)
        if protection is None:
            ctx.sender.send_message("Could not protect that block")
            return True
        await engine.manager.attach_attribute(protection, "access_counter")
        ctx.sender.send_message("Protection {0} created", protection.protection_id)
        return True

    engine.commands.register("cprivate", cprivate)
    alice = PrintingPlayer("alice")
    cancelled = await engine.process_command(SenderType.PLAYER, alice, "/cprivate")
    print(f"[3] Command handled (event cancelled: {cancelled})")

    # -- Step 4: Grant a friend guest access ---------------------------------
    protection = await engine.manager.find_protection(target)
    assert protection is not None
    await engine.manager.add_role(protection, Role.player("bob", AccessLevel.GUEST))
    print(f"[4] Roles: {[f'{r.kind}:{r.subject}={r.level}' for r in protection.roles]}")

    # -- Step 5: Check access from both halves -------------------------------
    right_half = Location(world="world", x=1.2, y=64.0, z=0.7)
    for actor in (Actor(name="bob"), Actor(name="mallory")):
        decision = await engine.manager.check_access(actor, right_half, AccessLevel.GUEST)
        print(f"[5] {actor.name}: allowed={decision.allowed} level={decision.level}")

    protection = await engine.manager.find_protection(target)
    assert protection is not None
    counter = protection.get_attribute("access_counter")
    print(f"    access counter state: {counter.dump_state() if counter else None}")

    # -- Step 6: Break the governing block -----------------------------------
    removed = await engine.manager.handle_block_destroyed(target)
    remaining = await engine.manager.find_protection(right_half)
    print(f"[6] Removed: {removed is not None}; still protected: {remaining is not None}")


if __name__ == "__main__":
    asyncio.run(main())
