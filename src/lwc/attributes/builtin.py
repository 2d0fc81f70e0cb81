"""Built-in protection attributes."""
from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, ClassVar

from lwc.attributes.registry import SimpleAttributeFactory
from lwc.core.types import ProtectionAttribute

if TYPE_CHECKING:
    from lwc.attributes.registry import AttributeRegistry
    from lwc.core.types import Actor, Protection


class ExpiryAttribute(ProtectionAttribute):
    """Lets a protection lapse at ``expires_at``.

    An expired protection no longer restricts access; the manager removes
    it the next time access is checked.  ``None`` never expires.
    """

    name: ClassVar[str] = "expiry"

    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(UTC)) >= self.expires_at


class AccessCounterAttribute(ProtectionAttribute):
    """Counts granted accesses and remembers who accessed last."""

    name: ClassVar[str] = "access_counter"

    count: int = 0
    last_actor: str | None = None

    def on_access(self, protection: Protection, actor: Actor) -> bool:
        self.count += 1
        self.last_actor = actor.name
        return True


BUILTIN_ATTRIBUTES: tuple[type[ProtectionAttribute], ...] = (
    ExpiryAttribute,
    AccessCounterAttribute,
)


def register_builtin_attributes(registry: AttributeRegistry) -> None:
    """Register a factory for every built-in attribute not yet present."""
    for attribute_cls in BUILTIN_ATTRIBUTES:
        if attribute_cls.name not in registry:
            registry.register(SimpleAttributeFactory.for_class(attribute_cls))
