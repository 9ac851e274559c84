"""
Domain models for availability windows, slots and reservations.
"""

from dataclasses import dataclass
from typing import Optional

from pendulum import DateTime


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.
    
    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime
    
    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")
    
    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class Slot(TimeRange):
    """
    A fixed-size bookable piece of an availability window.

    Slots are derived on every read and never stored.
    """


@dataclass(frozen=True)
class AvailabilityWindow:
    """
    A provider-declared interval during which scheduling is permitted.
    """
    id: int
    provider_id: int
    start: DateTime
    end: DateTime


@dataclass(frozen=True)
class Reservation:
    """
    A client's claim on a provider's time.

    ``created_at`` is taken from the caller's clock at creation and never
    changes. ``confirmed`` only ever moves from False to True.
    """
    id: int
    provider_id: int
    client_name: str
    start: DateTime
    end: DateTime
    confirmed: bool
    created_at: DateTime


@dataclass(frozen=True)
class SlotStatus:
    """A derived slot and the confirmed reservation holding it, if any."""
    slot: Slot
    reservation_id: Optional[int] = None
    
    @property
    def is_confirmed(self) -> bool:
        return self.reservation_id is not None
