# src/opsdesk/core/errors.py

"""
Error taxonomy shared by the registry, identity and workspace services.

Every error is reported to the caller; nothing here is retried automatically.
"""

from __future__ import annotations


class OpsDeskError(Exception):
    """Base class for user-reportable failures."""


class Unauthenticated(OpsDeskError):
    """No principal in the session (or bad credentials at login)."""

    def __init__(self, message: str = "Not signed in.") -> None:
        super().__init__(message)


class PermissionDenied(OpsDeskError):
    """The principal lacks rights for the requested mutation."""


class NotFound(OpsDeskError):
    """Referenced task/user is absent or lives in another workspace."""


class Conflict(OpsDeskError):
    """A uniqueness rule was violated (e.g. username already registered)."""


class StoreUnavailable(OpsDeskError):
    """The underlying persistence call failed; state is unchanged."""
