"""LWC shared domain types.

This module defines every value type, enum, and Pydantic model shared
across the protection engine.

Key design decisions:
* ``BlockPosition`` is a frozen (hashable) model and the identity of a
  protection: at most one protection exists per position.
* ``Role`` is a tagged variant -- ``kind`` is the explicit discriminant and
  authorization code handles every :class:`SubjectKind` exhaustively.
* ``ProtectionAttribute`` subclasses are plain Pydantic models; their field
  values *are* the attribute state that gets persisted.
* Enums use *string* values so they serialise cleanly to JSON.
"""
from __future__ import annotations

import enum
import logging
import math
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny

if TYPE_CHECKING:
    from lwc.core.interfaces import AttributeSource

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

_LEVEL_ORDER: dict[str, int] = {
    "none": 0,
    "guest": 1,
    "owner": 2,
    "admin": 3,
}


class AccessLevel(enum.StrEnum):
    """Access levels granted by roles.

    Levels form a total order used for authorization comparisons:
    ``NONE < GUEST < OWNER < ADMIN``.
    """

    NONE = "none"
    GUEST = "guest"
    OWNER = "owner"
    ADMIN = "admin"

    @property
    def numeric(self) -> int:
        """Return the rank of this level (0-3)."""
        return _LEVEL_ORDER[self.value]

    def __ge__(self, other: object) -> bool:
        if isinstance(other, AccessLevel):
            return self.numeric >= other.numeric
        return NotImplemented

    def __gt__(self, other: object) -> bool:
        if isinstance(other, AccessLevel):
            return self.numeric > other.numeric
        return NotImplemented

    def __le__(self, other: object) -> bool:
        if isinstance(other, AccessLevel):
            return self.numeric <= other.numeric
        return NotImplemented

    def __lt__(self, other: object) -> bool:
        if isinstance(other, AccessLevel):
            return self.numeric < other.numeric
        return NotImplemented


class SubjectKind(enum.StrEnum):
    """Discriminant of a :class:`Role` subject.

    * **PLAYER** -- a single player, matched by name.
    * **GROUP** -- every member of a named group.
    * **EVERYONE** -- the wildcard; matches any actor.
    * **PERMISSION** -- any actor an external permission source grants
      the node named by the subject.
    """

    PLAYER = "player"
    GROUP = "group"
    EVERYONE = "everyone"
    PERMISSION = "permission"


# ---------------------------------------------------------------------------
# Pydantic helper -- UTC-aware datetime default
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    """Return the current UTC datetime with timezone information."""
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# World coordinates
# ---------------------------------------------------------------------------

class BlockPosition(BaseModel):
    """Integer block coordinates in a named world."""

    model_config = ConfigDict(strict=True, frozen=True)

    world: str
    x: int
    y: int
    z: int

    def offset(self, dx: int, dy: int, dz: int) -> BlockPosition:
        """Return the position shifted by the given deltas."""
        return BlockPosition(world=self.world, x=self.x + dx, y=self.y + dy, z=self.z + dz)

    @property
    def sort_key(self) -> tuple[int, int, int]:
        return (self.x, self.y, self.z)

    def __str__(self) -> str:
        return f"{self.world}({self.x}, {self.y}, {self.z})"


class Location(BaseModel):
    """A point in a world.  Coordinates may be fractional."""

    model_config = ConfigDict(frozen=True)

    world: str
    x: float
    y: float
    z: float

    @property
    def block_x(self) -> int:
        return math.floor(self.x)

    @property
    def block_y(self) -> int:
        return math.floor(self.y)

    @property
    def block_z(self) -> int:
        return math.floor(self.z)

    def block_position(self) -> BlockPosition:
        """Return the position of the block containing this point."""
        return BlockPosition(
            world=self.world, x=self.block_x, y=self.block_y, z=self.block_z
        )


class Block(BaseModel):
    """A block as reported by the host world accessor.

    Two redundant identifiers describe the type: the canonical
    ``type_name`` (e.g. ``"chest"``) and the raw ``type_code``
    (e.g. ``54``).

    Hosts that know the orientation of a two-block structure (a bed's
    part and facing, a door's half) report the offset from this block
    to its other half in ``partner_offset``.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    position: BlockPosition
    type_name: str
    type_code: int = 0
    partner_offset: tuple[int, int, int] | None = None

    @property
    def match_candidates(self) -> tuple[str, str]:
        """Configuration match keys, most specific first."""
        return (self.type_name, str(self.type_code))


# ---------------------------------------------------------------------------
# Actors and roles
# ---------------------------------------------------------------------------

class Actor(BaseModel):
    """Someone attempting an action against a protection."""

    model_config = ConfigDict(frozen=True)

    name: str
    groups: frozenset[str] = Field(default_factory=frozenset)

    def in_group(self, group: str) -> bool:
        """Case-insensitive group membership check."""
        wanted = group.lower()
        return any(g.lower() == wanted for g in self.groups)


EVERYONE_SUBJECT = "*"


class Role(BaseModel):
    """A grant of an access level to a subject on one protection."""

    model_config = ConfigDict(strict=True, frozen=True)

    kind: SubjectKind
    subject: str
    level: AccessLevel

    @classmethod
    def player(cls, name: str, level: AccessLevel) -> Role:
        return cls(kind=SubjectKind.PLAYER, subject=name, level=level)

    @classmethod
    def group(cls, name: str, level: AccessLevel) -> Role:
        return cls(kind=SubjectKind.GROUP, subject=name, level=level)

    @classmethod
    def everyone(cls, level: AccessLevel) -> Role:
        return cls(kind=SubjectKind.EVERYONE, subject=EVERYONE_SUBJECT, level=level)

    @classmethod
    def permission(cls, node: str, level: AccessLevel) -> Role:
        return cls(kind=SubjectKind.PERMISSION, subject=node, level=level)

    @property
    def key(self) -> tuple[SubjectKind, str]:
        """Identity of the role within a protection (level excluded)."""
        return (self.kind, self.subject.lower())


# ---------------------------------------------------------------------------
# Attributes
# ---------------------------------------------------------------------------

class ProtectionAttribute(BaseModel):
    """Base class for pluggable per-protection extension objects.

    Subclasses set the ``name`` class variable and declare their state as
    ordinary model fields.  At most one attribute of a given name is
    attached to a protection.
    """

    model_config = ConfigDict(validate_assignment=True)

    name: ClassVar[str] = ""

    def dump_state(self) -> dict[str, Any]:
        """Return the JSON-compatible persisted state."""
        return self.model_dump(mode="json")

    def load_state(self, state: dict[str, Any]) -> None:
        """Replace this instance's state with a previously dumped one."""
        restored = type(self).model_validate(state)
        for field_name in type(self).model_fields:
            setattr(self, field_name, getattr(restored, field_name))

    def on_access(self, protection: Protection, actor: Actor) -> bool:
        """Hook run after *actor* was granted access to *protection*.

        Returns ``True`` when the attribute state changed and the
        protection must be saved.
        """
        return False


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------

class AttributeRecord(BaseModel):
    """Persisted form of one attribute."""

    model_config = ConfigDict(strict=True)

    name: str
    state: dict[str, Any] = Field(default_factory=dict)


class ProtectionRecord(BaseModel):
    """Persisted form of a :class:`Protection`.

    Stores serialise records with ``model_dump_json`` and restore them
    with ``model_validate_json``.
    """

    model_config = ConfigDict(strict=True)

    protection_id: int
    position: BlockPosition
    owner: str
    roles: list[Role] = Field(default_factory=list)
    attributes: list[AttributeRecord] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Protection
# ---------------------------------------------------------------------------

class Protection(BaseModel):
    """A protected location, its owner, roles and attributes.

    Mutators change in-memory state only; callers persist changes with an
    explicit save through the manager or store.
    """

    protection_id: int
    position: BlockPosition
    owner: str
    roles: list[Role] = Field(default_factory=list)
    attributes: dict[str, SerializeAsAny[ProtectionAttribute]] = Field(
        default_factory=dict
    )
    detached_attributes: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Persisted attribute state whose factory is not registered.",
    )
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    # -- roles -----------------------------------------------------------

    def add_role(self, role: Role) -> None:
        """Attach *role*, replacing any role for the same subject."""
        self.roles = [r for r in self.roles if r.key != role.key]
        self.roles.append(role)

    def remove_role(self, role: Role) -> bool:
        """Detach the role for *role*'s subject.  Returns ``True`` if removed."""
        before = len(self.roles)
        self.roles = [r for r in self.roles if r.key != role.key]
        return len(self.roles) != before

    def get_role(self, kind: SubjectKind, subject: str) -> Role | None:
        key = (kind, subject.lower())
        for role in self.roles:
            if role.key == key:
                return role
        return None

    def is_owner(self, name: str) -> bool:
        """Return ``True`` if *name* is the primary owner."""
        return self.owner.lower() == name.lower()

    # -- attributes ------------------------------------------------------

    def set_attribute(self, attribute: ProtectionAttribute) -> None:
        """Attach *attribute*, replacing one of the same name."""
        key = attribute.name.lower()
        self.detached_attributes.pop(key, None)
        self.attributes[key] = attribute

    def get_attribute(self, name: str) -> ProtectionAttribute | None:
        return self.attributes.get(name.lower())

    def remove_attribute(self, name: str) -> bool:
        key = name.lower()
        removed = self.attributes.pop(key, None) is not None
        return self.detached_attributes.pop(key, None) is not None or removed

    # -- persistence -----------------------------------------------------

    def touch(self) -> None:
        self.updated_at = _utcnow()

    def to_record(self) -> ProtectionRecord:
        """Serialise to the persisted record form."""
        attributes = [
            AttributeRecord(name=name, state=attribute.dump_state())
            for name, attribute in sorted(self.attributes.items())
        ]
        attributes.extend(
            AttributeRecord(name=name, state=dict(state))
            for name, state in sorted(self.detached_attributes.items())
        )
        return ProtectionRecord(
            protection_id=self.protection_id,
            position=self.position,
            owner=self.owner,
            roles=list(self.roles),
            attributes=attributes,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_record(
        cls,
        record: ProtectionRecord,
        attributes: AttributeSource | None = None,
    ) -> Protection:
        """Rebuild a protection from its record.

        Attribute instances are produced by *attributes* (normally the
        attribute registry).  Records whose factory is unknown are kept
        verbatim in ``detached_attributes``.
        """
        protection = cls(
            protection_id=record.protection_id,
            position=record.position,
            owner=record.owner,
            roles=list(record.roles),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
        for attr_record in record.attributes:
            key = attr_record.name.lower()
            instance = attributes.create(key) if attributes is not None else None
            if instance is None:
                logger.warning(
                    "No attribute factory for %r on protection %d; keeping raw state",
                    key,
                    record.protection_id,
                )
                protection.detached_attributes[key] = dict(attr_record.state)
                continue
            instance.load_state(attr_record.state)
            protection.attributes[key] = instance
        return protection
