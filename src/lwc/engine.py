"""LWC engine -- the composition root.

One :class:`Engine` is constructed at startup and handed by reference to
every host integration component that needs it.  It wires the host's
collaborators (world, configuration, store, console, permissions) into
the attribute registry, matcher, authorizer, protection manager and
command handler.

Usage
-----
::

    from lwc.attributes import AttributeRegistry
    from lwc.core.config import EngineConfig
    from lwc.core.interfaces import (
        InMemoryConfiguration,
        InMemoryProtectionStore,
        InMemoryWorld,
        LoggingConsole,
    )
    from lwc.engine import Engine

    registry = AttributeRegistry()
    engine = Engine(
        config=EngineConfig(),
        world=InMemoryWorld(),
        configuration=InMemoryConfiguration({"protections": {"enabled": True}}),
        store=InMemoryProtectionStore(attributes=registry),
        console=LoggingConsole(),
        attributes=registry,
    )

    protection = await engine.manager.create_protection("alice", location)
"""
from __future__ import annotations

import inspect
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from lwc.access.authorization import Authorizer
from lwc.attributes.builtin import register_builtin_attributes
from lwc.attributes.registry import AttributeRegistry
from lwc.commands.handler import CommandHandler, SenderType, parse_command
from lwc.core.errors import CommandError
from lwc.core.interfaces import ExecutorProtectionStore
from lwc.manager import ProtectionManager
from lwc.matching.matcher import ProtectionMatcher
from lwc.matching.structures import DEFAULT_STRUCTURE_RULES, StructureRule

if TYPE_CHECKING:
    from lwc.core.config import EngineConfig
    from lwc.core.interfaces import (
        BlockingProtectionStore,
        CommandSender,
        ConfigurationSource,
        PermissionSource,
        ProtectionStore,
        WorldAccessor,
    )

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "{0} An internal error occurred while processing this command"
CONSOLE_ERROR_MESSAGE = "An error was encountered while processing a command: {0}"


class Engine:
    """Owns every engine component for one running host.

    Parameters
    ----------
    config:
        Engine settings.
    world:
        Accessor for the host's blocks.
    configuration:
        Source of per-block-type settings.
    store:
        Protection persistence backend.  Stores that rebuild attributes
        on load should be given the same *attributes* registry.  A
        blocking store is wrapped in an
        :class:`~lwc.core.interfaces.ExecutorProtectionStore` with
        ``config.store_workers`` threads; call :meth:`close` on shutdown.
    console:
        Operator-facing diagnostics sink.
    permissions:
        Optional external permission source.
    attributes:
        Attribute registry to populate.  A new one is created (honouring
        ``config.strict_attribute_registration``) when omitted.  Built-in
        attributes are registered unless already present.
    structure_rules:
        Adjacency rules for multi-block structures.
    """

    def __init__(
        self,
        config: EngineConfig,
        world: WorldAccessor,
        configuration: ConfigurationSource,
        store: ProtectionStore | BlockingProtectionStore,
        console: CommandSender,
        permissions: PermissionSource | None = None,
        attributes: AttributeRegistry | None = None,
        structure_rules: Sequence[StructureRule] = DEFAULT_STRUCTURE_RULES,
    ) -> None:
        self._config = config
        self._world = world
        self._configuration = configuration
        self._console = console

        self._executor_store: ExecutorProtectionStore | None = None
        if not inspect.iscoroutinefunction(store.find_protection_record):
            logger.info(
                "Running blocking store %s on %d worker threads",
                type(store).__name__,
                config.store_workers,
            )
            self._executor_store = ExecutorProtectionStore(
                store,  # type: ignore[arg-type]
                workers=config.store_workers,
            )
            store = self._executor_store
        self._store: ProtectionStore = store
        self._permissions = permissions

        if attributes is None:
            attributes = AttributeRegistry(strict=config.strict_attribute_registration)
        self._attributes = attributes
        register_builtin_attributes(self._attributes)

        self._matcher = ProtectionMatcher(world, store, structure_rules)
        self._authorizer = Authorizer(permissions, config.admin_permission)
        self._manager = ProtectionManager(
            config=config,
            world=world,
            configuration=configuration,
            store=store,
            console=console,
            attributes=self._attributes,
            matcher=self._matcher,
            authorizer=self._authorizer,
        )
        self._commands = CommandHandler()

    # ------------------------------------------------------------------
    # Properties for introspection
    # ------------------------------------------------------------------

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def world(self) -> WorldAccessor:
        return self._world

    @property
    def configuration(self) -> ConfigurationSource:
        return self._configuration

    @property
    def store(self) -> ProtectionStore:
        return self._store

    @property
    def console(self) -> CommandSender:
        return self._console

    @property
    def permissions(self) -> PermissionSource | None:
        return self._permissions

    @property
    def attributes(self) -> AttributeRegistry:
        return self._attributes

    @property
    def matcher(self) -> ProtectionMatcher:
        return self._matcher

    @property
    def authorizer(self) -> Authorizer:
        return self._authorizer

    @property
    def manager(self) -> ProtectionManager:
        return self._manager

    @property
    def commands(self) -> CommandHandler:
        return self._commands

    def close(self) -> None:
        """Release the worker pool created for a blocking store, if any."""
        if self._executor_store is not None:
            self._executor_store.close()
            self._executor_store = None

    # ------------------------------------------------------------------
    # Command boundary
    # ------------------------------------------------------------------

    async def process_command(
        self, sender_type: SenderType, sender: CommandSender, message: str
    ) -> bool:
        """Run a raw player or console command.

        Returns ``True`` if the host event should be cancelled.  Any
        failure is reported to the console and, generically, to the
        sender; the host event then proceeds unmodified (``False``).
        """
        context = parse_command(sender_type, sender, message)
        if context is None:
            return False

        try:
            return await self._commands.handle(context)
        except CommandError as exc:
            self._report_command_failure(sender, exc.message, exc)
        except Exception as exc:
            self._report_command_failure(sender, f"{type(exc).__name__}: {exc}", exc)
        return False

    def _report_command_failure(
        self, sender: CommandSender, description: str, exc: BaseException
    ) -> None:
        logger.error("Command from %s failed", sender.name, exc_info=exc)
        self._console.send_message(CONSOLE_ERROR_MESSAGE, description)
        sender.send_message(INTERNAL_ERROR_MESSAGE, self._config.message_prefix)
