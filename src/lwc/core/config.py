"""LWC engine configuration and cascading setting lookup.

Two layers of configuration exist:

* :class:`EngineConfig` -- validated settings for the engine itself,
  supplied once at startup.
* Per-block-type settings read through an external
  :class:`~lwc.core.interfaces.ConfigurationSource`.  These are resolved
  with a *cascade*: an ordered list of candidate keys is tried, most
  specific first, and the first present value wins; when none is present
  a global default key is consulted.  Missing keys never raise.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from lwc.core.interfaces import ConfigurationSource

AFFIRMATIVE_VALUES: frozenset[str] = frozenset({"true", "yes"})


class EngineConfig(BaseModel):
    """Configuration for an LWC engine instance.

    All fields carry defaults so that ``EngineConfig()`` is sufficient
    for development.
    """

    model_config = ConfigDict(strict=True)

    config_root: str = Field(
        default="protections",
        min_length=1,
        description="Prefix of every per-block-type configuration key.",
    )
    admin_permission: str = Field(
        default="lwc.admin",
        description=(
            "External permission node granting the administrative "
            "override (access level ADMIN) on every protection."
        ),
    )
    strict_attribute_registration: bool = Field(
        default=False,
        description=(
            "When True, registering a second attribute factory under an "
            "existing name raises instead of replacing the first one."
        ),
    )
    store_workers: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Worker threads used to run blocking store calls.",
    )
    message_prefix: str = Field(
        default="[LWC]",
        description="Prefix of messages sent to actors.",
    )


# ---------------------------------------------------------------------------
# Cascade lookup
# ---------------------------------------------------------------------------

def first_present(
    source: ConfigurationSource,
    keys: Iterable[str],
    default: str | None,
) -> str | None:
    """Return the value of the first key in *keys* present in *source*.

    Keys are tried in the given order.  When none is present *default*
    is returned.
    """
    for key in keys:
        value = source.get_string(key, None)
        if value is not None:
            return value
    return default


def protection_setting_keys(
    node: str,
    candidates: Sequence[str],
    root: str = "protections",
) -> list[str]:
    """Build the specific keys for *node*, one per match candidate.

    ``protection_setting_keys("enabled", ["chest", "54"])`` gives
    ``["protections.protectables.chest.enabled",
    "protections.protectables.54.enabled"]``.
    """
    return [f"{root}.protectables.{candidate}.{node}" for candidate in candidates]


def resolve_protection_setting(
    source: ConfigurationSource,
    node: str,
    candidates: Sequence[str],
    root: str = "protections",
) -> str:
    """Resolve *node* for a block type through the full cascade.

    Specific ``<root>.protectables.<candidate>.<node>`` keys are tried in
    caller order, then the global ``<root>.<node>`` key.  The final
    default is ``""``.
    """
    keys = protection_setting_keys(node, candidates, root)
    keys.append(f"{root}.{node}")
    return first_present(source, keys, "") or ""


def is_affirmative(value: str | None) -> bool:
    """Return ``True`` for ``"true"`` or ``"yes"`` (case-insensitive)."""
    if not value:
        return False
    return value.lower() in AFFIRMATIVE_VALUES
