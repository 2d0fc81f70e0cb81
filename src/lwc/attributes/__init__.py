"""Pluggable protection attributes.

* **AttributeRegistry** -- name -> factory mapping with a configurable
  re-registration policy.
* **AttributeFactory** -- the factory interface extensions implement.
* **SimpleAttributeFactory** -- factory built from an attribute class.
* **ExpiryAttribute**, **AccessCounterAttribute** -- built-in attributes.
"""
from __future__ import annotations

from lwc.attributes.builtin import (
    BUILTIN_ATTRIBUTES,
    AccessCounterAttribute,
    ExpiryAttribute,
    register_builtin_attributes,
)
from lwc.attributes.registry import (
    AttributeFactory,
    AttributeRegistry,
    SimpleAttributeFactory,
)

__all__ = [
    "AttributeFactory",
    "AttributeRegistry",
    "SimpleAttributeFactory",
    "ExpiryAttribute",
    "AccessCounterAttribute",
    "BUILTIN_ATTRIBUTES",
    "register_builtin_attributes",
]
