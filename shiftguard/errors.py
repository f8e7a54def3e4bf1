"""Error types raised by the consistency core and its callers."""

from __future__ import annotations


class ShiftGuardError(ValueError):
    """Base class for all deterministic, non-retryable errors."""


class InvalidRange(ShiftGuardError):
    """Start of a time range is not strictly before its end."""


class AlreadySigned(ShiftGuardError):
    """Sign requested for a period that is already signed."""


class NotSigned(ShiftGuardError):
    """Unsign requested for a period that is not signed."""


class AlreadyClosed(ShiftGuardError):
    """Close requested for a time entry that already has a clock-out."""


class AlreadyClockedIn(ShiftGuardError):
    """Clock-in requested while the membership still has an open entry."""


class OverlapError(ShiftGuardError):
    """Committing the interval would double-book its owner."""

    def __init__(self, message: str, owner_id: str, result):
        super().__init__(message)
        self.owner_id = owner_id
        self.result = result


class AlreadyExists(ShiftGuardError):
    """A record that must be unique already exists."""


class NotFound(ShiftGuardError):
    """A referenced record does not exist."""


class PermissionDenied(ShiftGuardError):
    """The acting identity may not perform the requested change."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
