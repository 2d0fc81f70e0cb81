"""Protection manager -- the façade over matching, storage and access.

The manager coordinates every operation the host integration layer
performs on protections:

* **Eligibility** -- :meth:`ProtectionManager.is_block_protectable` via
  the cascading per-block-type configuration.
* **Lookup** -- :meth:`ProtectionManager.find_protection` resolves a
  location through the matcher.  Pure read.
* **Lifecycle** -- create, remove, and removal when the governing block
  is destroyed.
* **Mutation** -- roles and attributes, each followed by an explicit save.
* **Access** -- :meth:`ProtectionManager.authorize` and the
  location-level :meth:`ProtectionManager.check_access`.

Concurrency
-----------
Mutations of one protection are serialized by a per-coordinate
``asyncio.Lock``.  Inside the lock the current record is re-read from
the store, mutated and saved, so two simultaneous actions on the same
coordinates never lose each other's update.  The caller's
:class:`~lwc.core.types.Protection` object is refreshed only after a
successful save.  Creation locks the structure's lowest block and
refuses a structure that already has a protection.

Persistence failures are recoverable: they are logged, reported on the
console, and surface as ``None`` / ``False`` results.
"""
from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Callable
from typing import TYPE_CHECKING

from lwc.access.authorization import AccessDecision
from lwc.attributes.builtin import ExpiryAttribute
from lwc.core.config import is_affirmative, resolve_protection_setting
from lwc.core.errors import (
    LWCError,
    PersistenceError,
    ProtectionExists,
    ProtectionNotFound,
)
from lwc.core.types import (
    AccessLevel,
    Actor,
    Block,
    BlockPosition,
    Location,
    Protection,
    ProtectionAttribute,
    Role,
)

if TYPE_CHECKING:
    from lwc.access.authorization import Authorizer
    from lwc.attributes.registry import AttributeFactory, AttributeRegistry
    from lwc.core.config import EngineConfig
    from lwc.core.interfaces import (
        CommandSender,
        ConfigurationSource,
        ProtectionStore,
        WorldAccessor,
    )
    from lwc.matching.matcher import ProtectionMatcher, ProtectionSet

logger = logging.getLogger(__name__)


class ProtectionManager:
    """Creates, finds, mutates and authorizes protections.

    Parameters
    ----------
    config:
        Engine settings.
    world:
        Accessor for the host's blocks.
    configuration:
        Source of per-block-type settings.
    store:
        Protection persistence backend.
    console:
        Operator-facing diagnostics sink.
    attributes:
        Attribute factory registry.
    matcher:
        Structure matcher bound to the same world and store.
    authorizer:
        Role evaluator.
    """

    def __init__(
        self,
        config: EngineConfig,
        world: WorldAccessor,
        configuration: ConfigurationSource,
        store: ProtectionStore,
        console: CommandSender,
        attributes: AttributeRegistry,
        matcher: ProtectionMatcher,
        authorizer: Authorizer,
    ) -> None:
        self._config = config
        self._world = world
        self._configuration = configuration
        self._store = store
        self._console = console
        self._attributes = attributes
        self._matcher = matcher
        self._authorizer = authorizer
        self._locks: weakref.WeakValueDictionary[BlockPosition, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    # ------------------------------------------------------------------
    # Configuration / eligibility
    # ------------------------------------------------------------------

    def get_protection_configuration(self, node: str, *match: str) -> str:
        """Resolve a per-block-type setting.

        Each entry of *match* is tried as
        ``<root>.protectables.<match>.<node>`` in order, then the global
        ``<root>.<node>``; the final default is ``""``.
        """
        return resolve_protection_setting(
            self._configuration, node, match, self._config.config_root
        )

    def is_block_protectable(self, block: Block) -> bool:
        """Return ``True`` if the block's type may be protected."""
        enabled = self.get_protection_configuration("enabled", *block.match_candidates)
        return is_affirmative(enabled)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def block_at(self, location: Location) -> Block:
        """Return the block containing *location*."""
        return self._world.block_at(
            location.world, location.block_x, location.block_y, location.block_z
        )

    async def match_protection(self, location: Location) -> ProtectionSet:
        """Resolve the whole structure at *location*."""
        return await self._matcher.match_protection(self.block_at(location))

    async def find_protection(self, location: Location) -> Protection | None:
        """Return the protection governing the block at *location*, if any."""
        matched = await self.match_protection(location)
        return matched.resultant

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_protection(self, owner: str, location: Location) -> Protection | None:
        """Protect the block at *location* for *owner*.

        Persists the record, attaches the owner role and saves.  Returns
        ``None`` (after logging) when the store cannot create the record or
        the block's structure is already protected.  Creation is serialized
        on the structure's lowest block, so both halves of a double chest
        share one lock.
        """
        block = self.block_at(location)
        position = block.position
        blocks, rule = self._matcher.discover(block)
        anchor = min((b.position for b in blocks), key=lambda p: p.sort_key)
        async with self._lock_for(anchor):
            try:
                matched = await self._matcher.collect(block, blocks, rule)
                existing = matched.resultant
                if existing is not None:
                    raise ProtectionExists(
                        f"Protection {existing.protection_id} already covers {position}",
                        details={
                            "position": str(position),
                            "protection_id": existing.protection_id,
                        },
                    )
                protection = await self._store.create_protection_record(position, owner)
            except PersistenceError as exc:
                self._report_failure("create", position, exc)
                return None

            protection.add_role(Role.player(owner, AccessLevel.OWNER))
            try:
                await self._store.save(protection)
            except PersistenceError as exc:
                self._report_failure("save", position, exc)
                await self._discard(protection)
                return None

        logger.info(
            "Created protection %d at %s for %s", protection.protection_id, position, owner
        )
        return protection

    async def remove_protection(self, protection: Protection) -> bool:
        """Delete *protection*.  Returns ``False`` if the store failed."""
        async with self._lock_for(protection.position):
            try:
                await self._store.delete(protection)
            except PersistenceError as exc:
                self._report_failure("delete", protection.position, exc)
                return False
        logger.info("Removed protection %d at %s", protection.protection_id, protection.position)
        return True

    async def handle_block_destroyed(self, location: Location) -> Protection | None:
        """Remove the protection whose governing block is at *location*.

        Destroying the other block of a structure (e.g. the unprotected
        half of a double chest) leaves the protection in place.  Returns
        the removed protection, or ``None``.
        """
        block = self.block_at(location)
        matched = await self._matcher.match_protection(block)
        protection = matched.resultant
        if protection is None or protection.position != block.position:
            return None
        if not await self.remove_protection(protection):
            return None
        return protection

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def save_protection(self, protection: Protection) -> bool:
        """Persist *protection* as is.  Returns ``False`` on store failure."""
        async with self._lock_for(protection.position):
            try:
                await self._store.save(protection)
            except PersistenceError as exc:
                self._report_failure("save", protection.position, exc)
                return False
        return True

    async def add_role(self, protection: Protection, role: Role) -> bool:
        """Grant *role* on *protection* and save."""
        return await self._update(protection, lambda p: p.add_role(role))

    async def remove_role(self, protection: Protection, role: Role) -> bool:
        """Revoke the role for *role*'s subject and save.

        The owner's own role cannot be removed while they own the
        protection.
        """
        if role.key == Role.player(protection.owner, AccessLevel.OWNER).key:
            logger.warning(
                "Refusing to remove owner role of protection %d", protection.protection_id
            )
            return False
        return await self._update(protection, lambda p: p.remove_role(role))

    async def set_attribute(
        self, protection: Protection, attribute: ProtectionAttribute
    ) -> bool:
        """Attach *attribute* (replacing one of the same name) and save."""
        return await self._update(protection, lambda p: p.set_attribute(attribute))

    async def attach_attribute(
        self, protection: Protection, name: str
    ) -> ProtectionAttribute | None:
        """Create the attribute *name* through the registry, attach and save.

        Returns the attached attribute, or ``None`` if *name* is unknown
        or the save failed.
        """
        attribute = self.create_protection_attribute(name)
        if attribute is None:
            return None
        if not await self.set_attribute(protection, attribute):
            return None
        return protection.get_attribute(name)

    async def remove_attribute(self, protection: Protection, name: str) -> bool:
        """Detach the attribute *name* and save."""
        return await self._update(protection, lambda p: p.remove_attribute(name))

    # ------------------------------------------------------------------
    # Attribute factories
    # ------------------------------------------------------------------

    def register_attribute_factory(self, factory: AttributeFactory | None) -> None:
        """Register an attribute factory.

        Raises :class:`~lwc.core.errors.InvalidArgument` for ``None``.
        """
        self._attributes.register(factory)

    def create_protection_attribute(self, name: str) -> ProtectionAttribute | None:
        """Return a new attribute named *name*, or ``None`` if unregistered."""
        return self._attributes.create(name)

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def authorize(self, actor: Actor, protection: Protection, required: AccessLevel) -> bool:
        """Return ``True`` if *actor* may act on *protection* at *required*."""
        return self._authorizer.authorize(actor, protection, required)

    async def check_access(
        self, actor: Actor, location: Location, required: AccessLevel
    ) -> AccessDecision:
        """Decide whether *actor* may act on the block at *location*.

        * Unprotected blocks are allowed.
        * A protection whose ``expiry`` attribute has lapsed is removed and
          the action allowed.
        * Otherwise the role evaluation decides; on success every
          attribute's ``on_access`` hook runs and changes are saved.

        Fails closed: a store error while resolving denies the action.
        """
        try:
            matched = await self.match_protection(location)
        except LWCError as exc:
            logger.error("Denying %s at %s: %s", actor.name, location, exc.message)
            return AccessDecision(allowed=False, level=AccessLevel.NONE, required=required)

        protection = matched.resultant
        if protection is None:
            return AccessDecision(allowed=True, level=AccessLevel.NONE, required=required)

        expiry = protection.get_attribute(ExpiryAttribute.name)
        if isinstance(expiry, ExpiryAttribute) and expiry.is_expired():
            logger.info("Protection %d expired; removing", protection.protection_id)
            await self.remove_protection(protection)
            return AccessDecision(allowed=True, level=AccessLevel.NONE, required=required)

        decision = self._authorizer.evaluate(actor, protection, required)
        if decision.allowed and protection.attributes:
            await self._update(
                protection, lambda p: _run_access_hooks(p, actor), only_if_changed=True
            )
        return decision

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _lock_for(self, position: BlockPosition) -> asyncio.Lock:
        lock = self._locks.get(position)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[position] = lock
        return lock

    async def _update(
        self,
        protection: Protection,
        mutation: Callable[[Protection], object],
        *,
        only_if_changed: bool = False,
    ) -> bool:
        """Re-read, mutate and save *protection* under its coordinate lock.

        With *only_if_changed*, the mutation's truthy return value decides
        whether a save is needed.
        """
        async with self._lock_for(protection.position):
            try:
                current = await self._store.find_protection_record(protection.position)
                if current is None or current.protection_id != protection.protection_id:
                    raise ProtectionNotFound(
                        f"Protection {protection.protection_id} no longer exists",
                        details={"protection_id": protection.protection_id},
                    )
                changed = mutation(current)
                if only_if_changed and not changed:
                    return True
                await self._store.save(current)
            except PersistenceError as exc:
                self._report_failure("update", protection.position, exc)
                return False

        for field_name in Protection.model_fields:
            setattr(protection, field_name, getattr(current, field_name))
        return True

    async def _discard(self, protection: Protection) -> None:
        try:
            await self._store.delete(protection)
        except PersistenceError as exc:
            logger.error(
                "Could not discard incomplete protection %d: %s",
                protection.protection_id,
                exc.message,
            )

    def _report_failure(self, action: str, position: BlockPosition, exc: LWCError) -> None:
        logger.warning("Failed to %s protection at %s: %s", action, position, exc.message)
        self._console.send_message(
            "Failed to {0} protection at {1}: {2}", action, position, exc.message
        )


def _run_access_hooks(protection: Protection, actor: Actor) -> bool:
    changed = [attr.on_access(protection, actor) for attr in protection.attributes.values()]
    return any(changed)
