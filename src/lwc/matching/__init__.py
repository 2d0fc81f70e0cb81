"""Structure discovery and protection resolution.

* **ProtectionMatcher** -- resolves a reference block to the protection
  governing its structure.
* **ProtectionSet** -- the blocks of one structure plus its resultant.
* **StructureRule** -- adjacency rules for multi-block structures.
"""
from __future__ import annotations

from lwc.matching.matcher import ProtectionMatcher, ProtectionSet
from lwc.matching.structures import (
    BED_RULE,
    CHEST_RULE,
    DEFAULT_STRUCTURE_RULES,
    DOOR_RULE,
    StructureRule,
)

__all__ = [
    "ProtectionMatcher",
    "ProtectionSet",
    "StructureRule",
    "DEFAULT_STRUCTURE_RULES",
    "CHEST_RULE",
    "DOOR_RULE",
    "BED_RULE",
]
