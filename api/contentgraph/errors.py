"""Domain error taxonomy.

Every consistency mechanism raises these and lets them propagate; only the
mutation orchestrator decides to roll back, and only the transport layer
translates them into wire responses.
"""

from __future__ import annotations


class ContentGraphError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(ContentGraphError):
    """Bad input shape or content, rejected before any transaction opens."""


class ConflictError(ContentGraphError):
    """The request would produce no state change (duplicate, wrong state)."""


class NotFoundError(ContentGraphError):
    """The target is absent or soft-deleted."""


class PermissionDeniedError(ContentGraphError):
    """The actor is not allowed to mutate the target."""


class WriteError(ContentGraphError):
    """A database-level failure mid-transaction; the operation was rolled back."""


class ContractError(ContentGraphError):
    """Caller misuse (missing notification context, XOR violations, bad counters)."""
