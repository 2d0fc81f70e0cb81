"""Role-based authorization against a protection.

The effective access level of an actor on a protection is the
**maximum** level among every source that applies to the actor:

1. **Ownership** -- the primary owner is always authorized.
2. **Roles** -- every role whose subject the actor qualifies as: their
   own player name, each group they belong to, the ``everyone``
   wildcard, and each permission node the external permission source
   grants them.  All matches are collected; the highest level wins.
3. **Administrative override** -- holding the configured admin
   permission node yields level ``ADMIN``.

A request is authorized iff the effective level is at least the
required level.  Taking the maximum (rather than the first match) keeps
an actor with a low personal role from losing a higher level granted
to one of their groups.

Evaluation fails closed: an error raised by the external permission
source counts as "not granted" for that check and is logged.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, assert_never

from lwc.core.errors import AccessDenied
from lwc.core.types import AccessLevel, Actor, Protection, Role, SubjectKind

if TYPE_CHECKING:
    from lwc.core.interfaces import PermissionSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AccessDecision:
    """The result of an authorization evaluation.

    Attributes
    ----------
    allowed:
        Whether the request is permitted.
    level:
        The effective access level of the actor.
    required:
        The level the action required.
    owner:
        ``True`` if the actor is the protection's primary owner.
    matched_roles:
        Every role that applied to the actor.
    protection:
        The evaluated protection (``None`` for unprotected blocks).
    """

    allowed: bool
    level: AccessLevel
    required: AccessLevel
    owner: bool = False
    matched_roles: tuple[Role, ...] = field(default_factory=tuple)
    protection: Protection | None = None


class Authorizer:
    """Evaluates an actor's access to a protection.

    Parameters
    ----------
    permissions:
        Optional external permission source.  When ``None``, permission
        roles never match and no administrative override exists.
    admin_permission:
        Permission node granting the administrative override.
    """

    def __init__(
        self,
        permissions: PermissionSource | None = None,
        admin_permission: str = "lwc.admin",
    ) -> None:
        self._permissions = permissions
        self._admin_permission = admin_permission

    # -- Public API ---------------------------------------------------------

    def evaluate(
        self, actor: Actor, protection: Protection, required: AccessLevel
    ) -> AccessDecision:
        """Compute the full :class:`AccessDecision` for *actor*."""
        owner = protection.is_owner(actor.name)
        matched = tuple(r for r in protection.roles if self.role_applies(r, actor))

        level = AccessLevel.NONE
        for role in matched:
            if role.level > level:
                level = role.level
        if owner and level < AccessLevel.OWNER:
            level = AccessLevel.OWNER
        if self._admin_permission and self._has_permission(actor, self._admin_permission):
            level = AccessLevel.ADMIN

        allowed = owner or level >= required
        return AccessDecision(
            allowed=allowed,
            level=level,
            required=required,
            owner=owner,
            matched_roles=matched,
            protection=protection,
        )

    def authorize(
        self, actor: Actor, protection: Protection, required: AccessLevel
    ) -> bool:
        """Return ``True`` if *actor* may act on *protection* at *required*."""
        return self.evaluate(actor, protection, required).allowed

    def require(
        self, actor: Actor, protection: Protection, required: AccessLevel
    ) -> AccessDecision:
        """Like :meth:`evaluate`, but raise :class:`AccessDenied` on denial."""
        decision = self.evaluate(actor, protection, required)
        if not decision.allowed:
            raise AccessDenied(
                f"{actor.name} lacks {required} access to protection "
                f"{protection.protection_id}",
                details={
                    "actor": actor.name,
                    "protection_id": protection.protection_id,
                    "required": str(required),
                    "level": str(decision.level),
                },
            )
        return decision

    def role_applies(self, role: Role, actor: Actor) -> bool:
        """Return ``True`` if *actor* qualifies as *role*'s subject."""
        kind = role.kind
        if kind is SubjectKind.PLAYER:
            return role.subject.lower() == actor.name.lower()
        elif kind is SubjectKind.GROUP:
            return actor.in_group(role.subject)
        elif kind is SubjectKind.EVERYONE:
            return True
        elif kind is SubjectKind.PERMISSION:
            return self._has_permission(actor, role.subject)
        else:
            assert_never(kind)

    # -- Private helpers ----------------------------------------------------

    def _has_permission(self, actor: Actor, node: str) -> bool:
        if self._permissions is None:
            return False
        try:
            return bool(self._permissions.has_permission(actor, node))
        except Exception:
            logger.exception(
                "Permission source failed checking %r for %s; treating as denied",
                node,
                actor.name,
            )
            return False
