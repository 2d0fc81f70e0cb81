"""Adjacency rules for multi-block structures.

A :class:`StructureRule` says which block types form one logical
structure and which neighbour offsets may belong to it.  Rules with
``max_blocks == 2`` describe pairs; the matcher only pairs two blocks
when the pairing is unambiguous (see
:meth:`~lwc.matching.matcher.ProtectionMatcher.discover`).  Rules are plain
data; hosts with other materials pass their own tuple to the matcher.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from lwc.core.types import Block

Offset = tuple[int, int, int]

HORIZONTAL_OFFSETS: tuple[Offset, ...] = (
    (1, 0, 0),
    (-1, 0, 0),
    (0, 0, 1),
    (0, 0, -1),
)
VERTICAL_OFFSETS: tuple[Offset, ...] = (
    (0, 1, 0),
    (0, -1, 0),
)


@dataclass(frozen=True, slots=True)
class StructureRule:
    """Describes one kind of multi-block structure.

    Attributes
    ----------
    name:
        Label used in diagnostics.
    materials:
        Exact type names covered by this rule (lower-case).
    suffixes:
        Type-name suffixes covered by this rule, e.g. ``"_door"``.
    offsets:
        Neighbour offsets explored from every block of the structure,
        in the order they are tried.
    max_blocks:
        Upper bound on the structure size, reference block included.
    same_material:
        When ``True`` a neighbour joins only if its type name equals the
        reference block's; otherwise any type covered by the rule joins.
    run_axis:
        For two-block structures stacked along one axis (doors), the unit
        step of that axis.  A block then pairs by its place in the
        contiguous run, counted from the run's low end, so a column of
        doors splits into consecutive pairs.
    """

    name: str
    materials: frozenset[str] = frozenset()
    suffixes: tuple[str, ...] = ()
    offsets: tuple[Offset, ...] = ()
    max_blocks: int = 2
    same_material: bool = True
    run_axis: Offset | None = None

    def covers(self, type_name: str) -> bool:
        """Return ``True`` if *type_name* forms structures of this kind."""
        lowered = type_name.lower()
        return lowered in self.materials or any(lowered.endswith(s) for s in self.suffixes)

    def links(self, reference: Block, candidate: Block) -> bool:
        """Return ``True`` if *candidate* belongs to *reference*'s structure."""
        if not self.covers(candidate.type_name):
            return False
        if self.same_material:
            return candidate.type_name.lower() == reference.type_name.lower()
        return True


CHEST_RULE = StructureRule(
    name="chest",
    materials=frozenset({"chest", "trapped_chest"}),
    offsets=HORIZONTAL_OFFSETS,
    max_blocks=2,
)
DOOR_RULE = StructureRule(
    name="door",
    materials=frozenset({"door"}),
    suffixes=("_door",),
    offsets=VERTICAL_OFFSETS,
    max_blocks=2,
    run_axis=(0, 1, 0),
)
BED_RULE = StructureRule(
    name="bed",
    materials=frozenset({"bed"}),
    suffixes=("_bed",),
    offsets=HORIZONTAL_OFFSETS,
    max_blocks=2,
)

DEFAULT_STRUCTURE_RULES: tuple[StructureRule, ...] = (CHEST_RULE, DOOR_RULE, BED_RULE)


def rule_for(block: Block, rules: Sequence[StructureRule]) -> StructureRule | None:
    """Return the first rule covering *block*'s type, if any."""
    for rule in rules:
        if rule.covers(block.type_name):
            return rule
    return None
