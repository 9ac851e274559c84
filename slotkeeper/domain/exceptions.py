"""
Domain-specific exception hierarchy for the scheduling engine.

Every failure the engine can report is one of these types. ``kind`` is a
stable identifier callers can switch on; ``operation`` is filled in by the
scheduling engine with the public operation that failed.
"""

from __future__ import annotations

from typing import Optional


class SchedulingError(Exception):
    """Base class for all scheduling errors."""

    kind = "SchedulingError"

    def __init__(self, message: str, *, operation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class InvalidInterval(SchedulingError):
    """Raised when a time range does not start before it ends."""

    kind = "InvalidInterval"


class OutsideAvailability(InvalidInterval):
    """Raised when a reservation is not covered by any availability window."""

    kind = "OutsideAvailability"


class LeadTimeViolation(SchedulingError):
    """Raised when a reservation starts too soon after the request."""

    kind = "LeadTimeViolation"


class SlotTaken(SchedulingError):
    """Raised when a confirmed reservation already holds the slot."""

    kind = "SlotTaken"


class NotFound(SchedulingError):
    """Raised when a reservation id is unknown."""

    kind = "NotFound"


class StorageFailure(SchedulingError):
    """Raised when the underlying store fails or is unavailable."""

    kind = "StorageFailure"
