"""Attribute factory registry.

Maps case-insensitive attribute names to factories producing
:class:`~lwc.core.types.ProtectionAttribute` instances.  The registry is
populated at startup (and whenever an extension loads); lookups after
that are plain dictionary reads.

Re-registration policy
----------------------
By default a second factory registered under an existing name replaces
the first and a warning is logged (last-registered wins).  With
``strict=True`` the second registration raises
:class:`~lwc.core.errors.DuplicateAttributeFactory` and the original
factory stays in place.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from lwc.core.errors import DuplicateAttributeFactory, InvalidArgument
from lwc.core.types import ProtectionAttribute

logger = logging.getLogger(__name__)


@runtime_checkable
class AttributeFactory(Protocol):
    """Creates attribute instances of one named type."""

    @property
    def name(self) -> str:
        ...

    def create(self) -> ProtectionAttribute:
        ...


class SimpleAttributeFactory:
    """Factory wrapping a zero-argument callable (usually the attribute class)."""

    def __init__(self, name: str, constructor: Callable[[], ProtectionAttribute]) -> None:
        self._name = name
        self._constructor = constructor

    @classmethod
    def for_class(cls, attribute_cls: type[ProtectionAttribute]) -> SimpleAttributeFactory:
        """Build a factory from an attribute class and its ``name``."""
        return cls(attribute_cls.name, attribute_cls)

    @property
    def name(self) -> str:
        return self._name

    def create(self) -> ProtectionAttribute:
        return self._constructor()

    def __repr__(self) -> str:
        return f"SimpleAttributeFactory(name={self._name!r})"


class AttributeRegistry:
    """Registry of attribute factories keyed by lower-cased name.

    Parameters
    ----------
    strict:
        Reject re-registration of an existing name instead of replacing.
    """

    def __init__(self, *, strict: bool = False) -> None:
        self._strict = strict
        self._factories: dict[str, AttributeFactory] = {}
        self._lock = threading.Lock()

    @property
    def strict(self) -> bool:
        return self._strict

    def register(self, factory: AttributeFactory | None) -> None:
        """Register *factory* under its lower-cased name.

        Raises
        ------
        InvalidArgument
            If *factory* is ``None`` or has an empty name.
        DuplicateAttributeFactory
            If the registry is strict and the name is taken.
        """
        if factory is None:
            raise InvalidArgument("factory cannot be None")
        key = (factory.name or "").strip().lower()
        if not key:
            raise InvalidArgument(
                "attribute factory name cannot be empty",
                details={"factory": repr(factory)},
            )

        with self._lock:
            existing = self._factories.get(key)
            if existing is not None and existing is not factory:
                if self._strict:
                    raise DuplicateAttributeFactory(
                        f"Attribute factory {key!r} is already registered",
                        details={"name": key},
                    )
                logger.warning(
                    "Replacing attribute factory %r (%r -> %r)", key, existing, factory
                )
            self._factories[key] = factory

    def unregister(self, name: str) -> bool:
        """Remove the factory for *name*.  Returns ``True`` if one was removed."""
        with self._lock:
            return self._factories.pop(name.lower(), None) is not None

    def create(self, name: str) -> ProtectionAttribute | None:
        """Return a new attribute instance, or ``None`` if *name* is unknown."""
        factory = self._factories.get(name.lower())
        if factory is None:
            return None
        return factory.create()

    def names(self) -> list[str]:
        """Return all registered names, sorted."""
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._factories

    def __len__(self) -> int:
        return len(self._factories)
