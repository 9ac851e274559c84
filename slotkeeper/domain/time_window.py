"""
Pure time arithmetic for slot slicing and interval comparison.

No state, no I/O. All durations are ``datetime.timedelta`` values
(``pendulum.Duration`` is a subclass) and all instants are pendulum
``DateTime`` objects.
"""

from datetime import timedelta
from typing import Iterator, Union

import pendulum

from .models import AvailabilityWindow, Slot, TimeRange

SLOT_DURATION = pendulum.duration(minutes=15)
MIN_LEAD_TIME = pendulum.duration(hours=24)
GRACE_PERIOD = pendulum.duration(minutes=30)

Interval = Union[TimeRange, AvailabilityWindow]


def slice_window(window: Interval, duration: timedelta = SLOT_DURATION) -> Iterator[Slot]:
    """
    Cut a window into consecutive slots of ``duration``.

    Slicing starts at ``window.start``. A slot ending exactly on
    ``window.end`` is included; a trailing remainder shorter than
    ``duration`` is dropped.

    Example:
    Window: 09:00 - 09:40, duration 15 min
    Result: [09:00-09:15, 09:15-09:30]
    """
    if duration <= timedelta(0):
        raise ValueError(f"Slot duration must be positive, got {duration}")
    
    cursor = window.start
    while cursor + duration <= window.end:
        yield Slot(start=cursor, end=cursor + duration)
        cursor = cursor + duration


def overlaps(a: Interval, b: Interval) -> bool:
    """Half-open intersection test: touching ranges do not overlap."""
    return a.start < b.end and b.start < a.end


def contains(outer: Interval, inner: Interval) -> bool:
    """Check if ``inner`` lies completely inside ``outer``."""
    return outer.start <= inner.start and inner.end <= outer.end
