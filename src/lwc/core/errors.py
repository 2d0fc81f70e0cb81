"""LWC error-code hierarchy.

Hierarchy
---------
::

    LWCError
    +-- InvalidArgument       (LWC-E1xx)
    +-- AuthorizationError    (LWC-E2xx)
    +-- PersistenceError      (LWC-E3xx)
    +-- CommandError          (LWC-E4xx)

Usage
-----
Raise concrete subclasses directly::

    raise ProtectionExists(f"A protection already exists at {position}")

Catch by category::

    try:
        ...
    except PersistenceError:
        # handles ProtectionExists, ProtectionNotFound, StoreUnavailable
        ...

Configuration lookups never raise: missing keys resolve to documented
defaults (see :mod:`lwc.core.config`).
"""
from __future__ import annotations

from typing import Any

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

class LWCError(Exception):
    """Base exception for all LWC errors.

    Attributes
    ----------
    code : str
        Error code, e.g. ``"LWC-E100"``.
    message : str
        Human-readable description.
    details : dict[str, Any]
        Machine-readable context specific to the error instance.
    resolution : str
        Suggested action for the caller.
    """

    code: str = "LWC-E000"
    message: str = "Unknown LWC error"
    resolution: str = ""

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        resolution: str | None = None,
    ) -> None:
        self.details: dict[str, Any] = details or {}
        if message is not None:
            self.message = message
        if resolution is not None:
            self.resolution = resolution
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialise the error for operator diagnostics."""
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["detail"] = self.details
        if self.resolution:
            payload["resolution"] = self.resolution
        return {"error": payload}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


# ===================================================================
# LWC-E1xx  Invalid arguments (caller bugs -- fail fast)
# ===================================================================

class InvalidArgument(LWCError):
    """LWC-E100 -- An argument violates the operation's contract."""

    code = "LWC-E100"
    message = "Invalid argument"
    resolution = "Fix the calling code; this indicates a programming error."


class DuplicateAttributeFactory(InvalidArgument):
    """LWC-E101 -- An attribute factory name is already registered.

    Only raised when strict attribute registration is enabled.
    """

    code = "LWC-E101"
    message = "An attribute factory with this name is already registered"
    resolution = (
        "Use a unique attribute name or disable strict_attribute_registration."
    )


# ===================================================================
# LWC-E2xx  Authorization
# ===================================================================

class AuthorizationError(LWCError):
    """LWC-E2xx -- Authorization errors."""

    code = "LWC-E2XX"


class AccessDenied(AuthorizationError):
    """LWC-E200 -- The actor lacks the required access level."""

    code = "LWC-E200"
    message = "Access to this protection was denied"
    resolution = "Ask the owner of the protection for access."


# ===================================================================
# LWC-E3xx  Persistence (recoverable)
# ===================================================================

class PersistenceError(LWCError):
    """LWC-E3xx -- The protection store could not complete an operation."""

    code = "LWC-E3XX"


class ProtectionExists(PersistenceError):
    """LWC-E300 -- A protection already exists at the coordinates."""

    code = "LWC-E300"
    message = "A protection already exists at this location"
    resolution = "Remove the existing protection first."


class ProtectionNotFound(PersistenceError):
    """LWC-E301 -- No persisted record for the protection."""

    code = "LWC-E301"
    message = "Protection record not found"
    resolution = "The protection may have been removed concurrently; look it up again."


class StoreUnavailable(PersistenceError):
    """LWC-E302 -- The backing store is unreachable or failed."""

    code = "LWC-E302"
    message = "The protection store is unavailable"
    resolution = "Check the persistence backend and retry."


# ===================================================================
# LWC-E4xx  Command processing
# ===================================================================

class CommandError(LWCError):
    """LWC-E4xx -- Command processing errors."""

    code = "LWC-E4XX"


class UnknownCommand(CommandError):
    """LWC-E400 -- No command registered under the given name."""

    code = "LWC-E400"
    message = "Unknown command"


class CommandFailed(CommandError):
    """LWC-E401 -- A command callback raised while executing."""

    code = "LWC-E401"
    message = "Command failed"
