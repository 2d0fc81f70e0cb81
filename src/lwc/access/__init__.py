"""Access control for protections.

* **Authorizer** -- evaluates an actor against a protection's owner,
  roles and the external permission source (max-of-matches policy).
* **AccessDecision** -- dataclass holding the result of an evaluation.
"""
from __future__ import annotations

from lwc.access.authorization import AccessDecision, Authorizer

__all__ = [
    "Authorizer",
    "AccessDecision",
]
