"""
Domain layer - Pure business logic without external dependencies.
"""

from .exceptions import (
    InvalidInterval,
    LeadTimeViolation,
    NotFound,
    OutsideAvailability,
    SchedulingError,
    SlotTaken,
    StorageFailure,
)
from .models import AvailabilityWindow, Reservation, Slot, SlotStatus, TimeRange
from .time_window import GRACE_PERIOD, MIN_LEAD_TIME, SLOT_DURATION, contains, overlaps, slice_window

__all__ = [
    "AvailabilityWindow",
    "Reservation",
    "Slot",
    "SlotStatus",
    "TimeRange",
    "SchedulingError",
    "InvalidInterval",
    "OutsideAvailability",
    "LeadTimeViolation",
    "SlotTaken",
    "NotFound",
    "StorageFailure",
    "SLOT_DURATION",
    "MIN_LEAD_TIME",
    "GRACE_PERIOD",
    "slice_window",
    "overlaps",
    "contains",
]
