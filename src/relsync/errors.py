from __future__ import annotations

"""
Exceptions raised by RelSync.

Storage failures are not wrapped: anything SQLAlchemy raises
(IntegrityError, OperationalError, ...) reaches the caller unchanged,
after the session has been rolled back.
"""


class RelSyncError(Exception):
    """Base class for every error raised by this package."""


class MalformedSubmission(RelSyncError, ValueError):
    """
    Submitted relation values have a shape the reconciler cannot use.
    Only raised when the writer runs in strict mode.
    """


class UnknownRelationType(RelSyncError):
    """No reconciler exists for a descriptor's relation kind (strict mode)."""


class NestingTooDeep(RelSyncError):
    """Nested relation submissions went deeper than the configured limit."""

    def __init__(self, max_depth: int):
        super().__init__(f"relation nesting exceeds max_depth={max_depth}")
        self.max_depth = max_depth


class RecordNotFound(RelSyncError, LookupError):
    """The record to update does not exist."""
