"""
Error taxonomy for the focus engine.

Every error derives from FocusTrackerError (itself a RuntimeError) so callers
can catch the whole family in one place, or pick out the one they care about.
"""

from __future__ import annotations


class FocusTrackerError(RuntimeError):
    """Base class for all engine errors."""


class ValidationError(FocusTrackerError):
    """Impossible configuration (e.g. negative goal, offset out of range)."""


class DuplicateNameError(FocusTrackerError):
    """A tag with the same (case-sensitive) name already exists."""

    def __init__(self, name: str) -> None:
        super().__init__(f"A tag named '{name}' already exists.")
        self.name = name


class ProtectedTagError(FocusTrackerError):
    """Default tags cannot be deleted or renamed."""

    def __init__(self, name: str, action: str = "delete") -> None:
        super().__init__(f"Cannot {action} default tag '{name}'.")
        self.name = name
        self.action = action


class NotFoundError(FocusTrackerError):
    """An operation referenced an unknown Session / Tag / UsageRecord id."""

    def __init__(self, kind: str, record_id: object) -> None:
        super().__init__(f"{kind} {record_id!r} not found.")
        self.kind = kind
        self.record_id = record_id


class StoreError(FocusTrackerError):
    """The underlying persistence layer failed. Always chained to the cause."""
