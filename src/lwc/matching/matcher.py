"""Protection matching -- resolve a block to the protection governing it.

Given a reference block, the matcher:

1. Discovers the blocks physically linked to it as one logical structure
   (double chests, two-block doors and beds) using the structure rules,
   bounded by each rule's ``max_blocks``.  Two-block structures pair only
   with an unambiguous partner, so neighbouring beds, chests and stacked
   doors never borrow each other's halves.
2. Looks up the persisted protection record at every discovered block.
3. Resolves the *resultant*: none when no record exists, the record when
   exactly one exists, and otherwise the record at the lowest
   ``(x, y, z)`` coordinates.  The tie-break makes the result identical
   whichever block of the structure was the reference, so authorization
   never depends on which half of a structure was clicked.
"""
from __future__ import annotations

import logging
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from lwc.matching.structures import (
    DEFAULT_STRUCTURE_RULES,
    Offset,
    StructureRule,
    rule_for,
)

if TYPE_CHECKING:
    from lwc.core.interfaces import ProtectionStore, WorldAccessor
    from lwc.core.types import Block, BlockPosition, Protection

logger = logging.getLogger(__name__)

# Longest run of stacked blocks walked when pairing along an axis.
_MAX_RUN = 512


@dataclass(slots=True)
class ProtectionSet:
    """Blocks discovered as one structure and the protections found on them.

    Constructed per resolution call and never persisted.

    Attributes
    ----------
    base:
        The reference block the match started from.
    blocks:
        Every block of the structure, reference block first.
    protections:
        Every persisted protection found on those blocks, in block order.
    rule:
        The structure rule that applied, or ``None`` for single blocks.
    """

    base: Block
    blocks: list[Block] = field(default_factory=list)
    protections: list[Protection] = field(default_factory=list)
    rule: StructureRule | None = None

    @property
    def positions(self) -> list[BlockPosition]:
        return [block.position for block in self.blocks]

    @property
    def resultant(self) -> Protection | None:
        """The single protection governing the structure, or ``None``."""
        if not self.protections:
            return None
        return min(self.protections, key=lambda p: p.position.sort_key)

    @property
    def conflicting(self) -> bool:
        """``True`` when more than one record was found in the structure."""
        return len(self.protections) > 1

    def __contains__(self, position: object) -> bool:
        return any(block.position == position for block in self.blocks)


class ProtectionMatcher:
    """Discovers structures and resolves their governing protection.

    Parameters
    ----------
    world:
        World accessor used to read neighbouring blocks.
    store:
        Store queried for persisted records.
    rules:
        Structure rules, tried in order.  Defaults to
        :data:`~lwc.matching.structures.DEFAULT_STRUCTURE_RULES`.
    """

    def __init__(
        self,
        world: WorldAccessor,
        store: ProtectionStore,
        rules: Sequence[StructureRule] = DEFAULT_STRUCTURE_RULES,
    ) -> None:
        self._world = world
        self._store = store
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple[StructureRule, ...]:
        return self._rules

    def discover(self, base: Block) -> tuple[list[Block], StructureRule | None]:
        """Return the blocks forming *base*'s structure and the rule used.

        Pairs (rules with ``max_blocks == 2``) are linked only when the
        pairing is unambiguous, in this order of preference:

        1. The host reported ``partner_offset`` on *base*; the block there
           joins if the rule links it and it does not name another partner.
        2. The rule has a ``run_axis``; *base* pairs with its neighbour
           along the axis according to its place in the contiguous run.
        3. Otherwise *base* and a neighbour pair only if each is the
           other's single linkable neighbour.

        An ambiguous block (e.g. the foot of one of two beds placed side by
        side, without orientation data) stands alone.  Larger structures
        are explored breadth-first over the rule's offsets, in offset
        order, up to ``max_blocks``.
        """
        rule = rule_for(base, self._rules)
        if rule is None:
            return [base], None

        if rule.max_blocks == 2:
            partner = self._partner(base, rule)
            return ([base] if partner is None else [base, partner]), rule

        blocks = [base]
        seen = {base.position}
        queue = deque([base])
        while queue and len(blocks) < rule.max_blocks:
            current = queue.popleft()
            for offset in rule.offsets:
                neighbour = self._neighbour(current, offset)
                if neighbour.position in seen:
                    continue
                seen.add(neighbour.position)
                if not rule.links(base, neighbour):
                    continue
                blocks.append(neighbour)
                queue.append(neighbour)
                if len(blocks) >= rule.max_blocks:
                    break
        return blocks, rule

    async def match_protection(self, base: Block) -> ProtectionSet:
        """Resolve the structure containing *base* into a :class:`ProtectionSet`."""
        blocks, rule = self.discover(base)
        return await self.collect(base, blocks, rule)

    async def collect(
        self, base: Block, blocks: list[Block], rule: StructureRule | None
    ) -> ProtectionSet:
        """Look up the persisted record at every block of a discovered structure."""
        matched = ProtectionSet(base=base, blocks=blocks, rule=rule)

        for block in blocks:
            protection = await self._store.find_protection_record(block.position)
            if protection is not None:
                matched.protections.append(protection)

        if matched.conflicting:
            logger.warning(
                "Structure at %s holds %d protections (ids %s); using %d",
                base.position,
                len(matched.protections),
                [p.protection_id for p in matched.protections],
                matched.resultant.protection_id,  # type: ignore[union-attr]
            )
        return matched

    # -- Pairing ------------------------------------------------------------

    def _neighbour(self, block: Block, offset: Offset) -> Block:
        position = block.position.offset(*offset)
        return self._world.block_at(position.world, position.x, position.y, position.z)

    def _linkable(self, block: Block, rule: StructureRule) -> list[Block]:
        found: list[Block] = []
        for offset in rule.offsets:
            neighbour = self._neighbour(block, offset)
            if rule.links(block, neighbour):
                found.append(neighbour)
        return found

    def _partner(self, base: Block, rule: StructureRule) -> Block | None:
        if base.partner_offset is not None:
            candidate = self._neighbour(base, base.partner_offset)
            if not rule.links(base, candidate):
                return None
            if (
                candidate.partner_offset is not None
                and candidate.position.offset(*candidate.partner_offset) != base.position
            ):
                return None
            return candidate

        if rule.run_axis is not None:
            return self._run_partner(base, rule, rule.run_axis)

        candidates = self._linkable(base, rule)
        if len(candidates) != 1:
            return None
        candidate = candidates[0]
        back = self._linkable(candidate, rule)
        if len(back) != 1 or back[0].position != base.position:
            return None
        return candidate

    def _run_partner(self, base: Block, rule: StructureRule, axis: Offset) -> Block | None:
        down = (-axis[0], -axis[1], -axis[2])
        steps = 0
        current = base
        while steps < _MAX_RUN:
            below = self._neighbour(current, down)
            if not rule.links(base, below):
                break
            current = below
            steps += 1

        candidate = self._neighbour(base, axis if steps % 2 == 0 else down)
        return candidate if rule.links(base, candidate) else None
