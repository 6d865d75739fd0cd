"""Error taxonomy for the practice core."""

from __future__ import annotations


class PracticeError(Exception):
    """Base exception for the attendance core."""


class ValidationError(PracticeError):
    """Raised when input is rejected before any state change."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason


class NotFoundError(PracticeError):
    """Raised when an intent references an unknown patient or record."""


class ConfirmationRequired(PracticeError):
    """Raised when a destructive intent was not confirmed by the caller."""


class PersistenceError(PracticeError):
    """Local cache read/write failure. Logged, never fatal."""


class RemoteError(PracticeError):
    """Network or remote store failure during push or pull."""
