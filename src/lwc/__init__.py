"""LWC -- block protection and access-control engine.

Binds ownership and access rules to world coordinates, resolves
multi-block structures to the protection governing them, and decides
whether an actor may act on a protected block.

Layout
------
* Core types, errors, config and interfaces (:mod:`lwc.core`)
* Attribute registry and built-in attributes (:mod:`lwc.attributes`)
* Role-based authorization (:mod:`lwc.access`)
* Structure matching (:mod:`lwc.matching`)
* Protection manager façade (:mod:`lwc.manager`)
* Command dispatch (:mod:`lwc.commands`)
* Engine composition root (:mod:`lwc.engine`)
"""
from __future__ import annotations

__version__ = "0.1.0"

from lwc.access import AccessDecision, Authorizer
from lwc.attributes import (
    AccessCounterAttribute,
    AttributeFactory,
    AttributeRegistry,
    ExpiryAttribute,
    SimpleAttributeFactory,
)
from lwc.commands import CommandContext, CommandHandler, SenderType
from lwc.core.config import EngineConfig
from lwc.core.errors import (
    AccessDenied,
    AuthorizationError,
    CommandError,
    CommandFailed,
    DuplicateAttributeFactory,
    InvalidArgument,
    LWCError,
    PersistenceError,
    ProtectionExists,
    ProtectionNotFound,
    StoreUnavailable,
    UnknownCommand,
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
    SubjectKind,
)
from lwc.engine import Engine
from lwc.manager import ProtectionManager
from lwc.matching import ProtectionMatcher, ProtectionSet, StructureRule

__all__ = [
    "__version__",
    # Core
    "AccessLevel",
    "Actor",
    "Block",
    "BlockPosition",
    "Location",
    "Protection",
    "ProtectionAttribute",
    "Role",
    "SubjectKind",
    "EngineConfig",
    # Errors
    "LWCError",
    "InvalidArgument",
    "DuplicateAttributeFactory",
    "AuthorizationError",
    "AccessDenied",
    "PersistenceError",
    "ProtectionExists",
    "ProtectionNotFound",
    "StoreUnavailable",
    "CommandError",
    "UnknownCommand",
    "CommandFailed",
    # Components
    "AttributeFactory",
    "AttributeRegistry",
    "SimpleAttributeFactory",
    "ExpiryAttribute",
    "AccessCounterAttribute",
    "Authorizer",
    "AccessDecision",
    "ProtectionMatcher",
    "ProtectionSet",
    "StructureRule",
    "ProtectionManager",
    "CommandContext",
    "CommandHandler",
    "SenderType",
    "Engine",
]
