"""LWC abstract interfaces and in-memory implementations.

This module defines the *structural* interfaces (``typing.Protocol``) for
every collaborator the protection engine consumes from its host -- the
world accessor, the configuration source, the protection store, the
console and permission sources -- plus lightweight in-memory
implementations suitable for testing and local development.

Every Protocol class is decorated with ``@runtime_checkable`` so that
``isinstance`` checks work at run-time in addition to static analysis.

Store calls are coroutines: the host may run them on a worker pool and
await the result.  :class:`ExecutorProtectionStore` adapts a blocking
store to that contract.

In-memory implementations are **not** thread-safe.
"""
from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from lwc.core.errors import (
    LWCError,
    ProtectionExists,
    ProtectionNotFound,
    StoreUnavailable,
)
from lwc.core.types import (
    Actor,
    Block,
    BlockPosition,
    Protection,
    ProtectionRecord,
)

if TYPE_CHECKING:
    from lwc.core.types import ProtectionAttribute

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

# ===================================================================
# Protocol (interface) definitions
# ===================================================================

@runtime_checkable
class WorldAccessor(Protocol):
    """Read access to the host's block grid."""

    def block_at(self, world: str, x: int, y: int, z: int) -> Block:
        """Return the block at the given coordinates (never ``None``)."""
        ...


@runtime_checkable
class ConfigurationSource(Protocol):
    """Dotted-key configuration lookup."""

    def get_string(self, key: str, default: str | None) -> str | None:
        """Return the value at *key*, or *default* when it is absent."""
        ...


@runtime_checkable
class ProtectionStore(Protocol):
    """Backend for protection persistence.

    Failures are reported by raising
    :class:`~lwc.core.errors.PersistenceError` subclasses.
    """

    async def create_protection_record(
        self, position: BlockPosition, owner: str
    ) -> Protection:
        """Persist a new, role-less protection at *position*.

        Raises :class:`ProtectionExists` if *position* is taken.
        """
        ...

    async def find_protection_record(self, position: BlockPosition) -> Protection | None:
        """Return the protection persisted at *position*, or ``None``."""
        ...

    async def save(self, protection: Protection) -> None:
        """Persist the current state of *protection*."""
        ...

    async def delete(self, protection: Protection) -> None:
        """Remove *protection*.  Raises :class:`ProtectionNotFound` if absent."""
        ...


@runtime_checkable
class BlockingProtectionStore(Protocol):
    """Synchronous variant of :class:`ProtectionStore` (e.g. a DB driver).

    Implementations may raise :class:`~lwc.core.errors.PersistenceError`
    subclasses or their driver's own exceptions (``OSError``,
    ``sqlite3.Error``, ...).  :class:`ExecutorProtectionStore` re-raises
    anything that is not an :class:`~lwc.core.errors.LWCError` as
    :class:`~lwc.core.errors.StoreUnavailable`.
    """

    def create_protection_record(self, position: BlockPosition, owner: str) -> Protection:
        ...

    def find_protection_record(self, position: BlockPosition) -> Protection | None:
        ...

    def save(self, protection: Protection) -> None:
        ...

    def delete(self, protection: Protection) -> None:
        ...


@runtime_checkable
class CommandSender(Protocol):
    """Anything that can receive messages: players and the console."""

    @property
    def name(self) -> str:
        ...

    def send_message(self, template: str, *args: Any) -> None:
        """Deliver a ``{0}``-style template.  Fire-and-forget."""
        ...


@runtime_checkable
class PermissionSource(Protocol):
    """External permission system (e.g. a host permissions plugin)."""

    def has_permission(self, actor: Actor, node: str) -> bool:
        """Return ``True`` if *actor* holds the permission *node*."""
        ...


@runtime_checkable
class AttributeSource(Protocol):
    """Produces attribute instances by name (the attribute registry)."""

    def create(self, name: str) -> ProtectionAttribute | None:
        """Return a fresh attribute, or ``None`` if *name* is unknown."""
        ...


# ===================================================================
# In-memory implementations (testing / development)
# ===================================================================

class InMemoryWorld:
    """In-memory block grid.  Unset coordinates hold air."""

    AIR_NAME = "air"
    AIR_CODE = 0

    def __init__(self) -> None:
        self._blocks: dict[BlockPosition, tuple[str, int, tuple[int, int, int] | None]] = {}

    # -- mutation helpers (not part of the Protocol) --------------------

    def set_block(
        self,
        world: str,
        x: int,
        y: int,
        z: int,
        type_name: str,
        type_code: int = 0,
        partner_offset: tuple[int, int, int] | None = None,
    ) -> Block:
        """Place a block (test helper)."""
        position = BlockPosition(world=world, x=x, y=y, z=z)
        self._blocks[position] = (type_name, type_code, partner_offset)
        return self.block_at(world, x, y, z)

    def clear_block(self, world: str, x: int, y: int, z: int) -> None:
        """Reset a block to air (test helper)."""
        self._blocks.pop(BlockPosition(world=world, x=x, y=y, z=z), None)

    # -- Protocol implementation ---------------------------------------

    def block_at(self, world: str, x: int, y: int, z: int) -> Block:
        position = BlockPosition(world=world, x=x, y=y, z=z)
        type_name, type_code, partner_offset = self._blocks.get(
            position, (self.AIR_NAME, self.AIR_CODE, None)
        )
        return Block(
            position=position,
            type_name=type_name,
            type_code=type_code,
            partner_offset=partner_offset,
        )


class InMemoryConfiguration:
    """Configuration backed by a nested mapping.

    ``get_string("protections.protectables.chest.enabled", None)`` walks
    ``data["protections"]["protectables"]["chest"]["enabled"]``.  A key
    present verbatim at the top level (dots included) also matches.
    Booleans render as ``"true"`` / ``"false"``.
    """

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})

    def set(self, key: str, value: Any) -> None:
        """Set a dotted key, creating intermediate sections (test helper)."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    def get_string(self, key: str, default: str | None) -> str | None:
        if key in self._data:
            return self._render(self._data[key], default)
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return default
            node = node[part]
        return self._render(node, default)

    @staticmethod
    def _render(value: Any, default: str | None) -> str | None:
        if value is None or isinstance(value, Mapping):
            return default
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)


class InMemoryProtectionStore:
    """In-memory protection store for testing and development.

    Records are held as JSON strings so every lookup returns a fresh,
    independent :class:`Protection` -- changes are only visible after an
    explicit :meth:`save`, as with a real database.

    Parameters
    ----------
    attributes:
        Source used to rebuild attribute instances on load (normally the
        engine's attribute registry).
    """

    def __init__(self, attributes: AttributeSource | None = None) -> None:
        self._attributes = attributes
        self._records: dict[BlockPosition, str] = {}
        self._next_id = 1
        self._available = True

    # -- helpers (not part of the Protocol) ----------------------------

    def set_available(self, available: bool) -> None:
        """Simulate a backend outage (test helper)."""
        self._available = available

    def __len__(self) -> int:
        return len(self._records)

    def _check_available(self) -> None:
        if not self._available:
            raise StoreUnavailable("In-memory store is marked unavailable")

    def _load(self, raw: str) -> Protection:
        record = ProtectionRecord.model_validate_json(raw)
        return Protection.from_record(record, self._attributes)

    # -- Protocol implementation ---------------------------------------

    async def create_protection_record(
        self, position: BlockPosition, owner: str
    ) -> Protection:
        self._check_available()
        if position in self._records:
            raise ProtectionExists(
                f"A protection already exists at {position}",
                details={"position": str(position)},
            )
        protection = Protection(protection_id=self._next_id, position=position, owner=owner)
        self._next_id += 1
        self._records[position] = protection.to_record().model_dump_json()
        return self._load(self._records[position])

    async def find_protection_record(self, position: BlockPosition) -> Protection | None:
        self._check_available()
        raw = self._records.get(position)
        if raw is None:
            return None
        return self._load(raw)

    async def save(self, protection: Protection) -> None:
        self._check_available()
        raw = self._records.get(protection.position)
        if raw is None or ProtectionRecord.model_validate_json(raw).protection_id != protection.protection_id:
            raise ProtectionNotFound(
                f"Protection {protection.protection_id} is not persisted at {protection.position}",
                details={"protection_id": protection.protection_id},
            )
        protection.touch()
        self._records[protection.position] = protection.to_record().model_dump_json()

    async def delete(self, protection: Protection) -> None:
        self._check_available()
        if self._records.pop(protection.position, None) is None:
            raise ProtectionNotFound(
                f"Protection {protection.protection_id} is not persisted at {protection.position}",
                details={"protection_id": protection.protection_id},
            )


class ExecutorProtectionStore:
    """Runs a :class:`BlockingProtectionStore` on a worker thread pool.

    Each call is dispatched with ``loop.run_in_executor`` so slow I/O
    never blocks the caller's event loop; results (and exceptions) are
    delivered back to the awaiting coroutine.  Driver exceptions other
    than :class:`~lwc.core.errors.LWCError` surface as
    :class:`~lwc.core.errors.StoreUnavailable`, chained to the original.

    Parameters
    ----------
    store:
        The blocking store to wrap.
    workers:
        Size of the worker pool.
    """

    def __init__(self, store: BlockingProtectionStore, workers: int = 4) -> None:
        self._store = store
        self._executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="lwc-store"
        )

    async def _run(self, func: Callable[..., _T], *args: Any) -> _T:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                self._executor, functools.partial(func, *args)
            )
        except LWCError:
            raise
        except Exception as exc:
            logger.warning(
                "Blocking store call %s failed: %s: %s",
                getattr(func, "__name__", func),
                type(exc).__name__,
                exc,
            )
            raise StoreUnavailable(
                f"{type(exc).__name__}: {exc}",
                details={"operation": getattr(func, "__name__", repr(func))},
            ) from exc

    async def create_protection_record(
        self, position: BlockPosition, owner: str
    ) -> Protection:
        return await self._run(self._store.create_protection_record, position, owner)

    async def find_protection_record(self, position: BlockPosition) -> Protection | None:
        return await self._run(self._store.find_protection_record, position)

    async def save(self, protection: Protection) -> None:
        await self._run(self._store.save, protection)

    async def delete(self, protection: Protection) -> None:
        await self._run(self._store.delete, protection)

    def close(self) -> None:
        """Shut the worker pool down, waiting for in-flight calls."""
        self._executor.shutdown(wait=True)


class LoggingConsole:
    """Console sink that writes operator messages to the ``lwc.console`` logger."""

    _log = logging.getLogger("lwc.console")

    @property
    def name(self) -> str:
        return "console"

    def send_message(self, template: str, *args: Any) -> None:
        self._log.info(template.format(*args) if args else template)


class InMemoryPermissionSource:
    """In-memory permission source.  The node ``"*"`` grants everything."""

    def __init__(self) -> None:
        self._nodes: dict[str, set[str]] = {}

    def grant(self, actor_name: str, node: str) -> None:
        """Grant *node* to an actor (test helper)."""
        self._nodes.setdefault(actor_name.lower(), set()).add(node.lower())

    def revoke(self, actor_name: str, node: str) -> None:
        """Revoke *node* from an actor (test helper)."""
        self._nodes.get(actor_name.lower(), set()).discard(node.lower())

    def has_permission(self, actor: Actor, node: str) -> bool:
        held = self._nodes.get(actor.name.lower(), set())
        return "*" in held or node.lower() in held
