"""
Tests for slot slicing and interval helpers.
"""

import pendulum
import pytest

from slotkeeper.domain.models import AvailabilityWindow, Slot, TimeRange
from slotkeeper.domain.time_window import SLOT_DURATION, contains, overlaps, slice_window


def _window(start: str, end: str) -> TimeRange:
    return TimeRange(
        start=pendulum.parse(start, tz="Europe/Berlin"),
        end=pendulum.parse(end, tz="Europe/Berlin")
    )


class TestSliceWindow:
    """Tests for slice_window."""
    
    def test_trailing_remainder_is_dropped(self):
        """A 40 minute window yields two 15 minute slots."""
        window = _window("2024-11-27 09:00", "2024-11-27 09:40")
        
        slots = list(slice_window(window, SLOT_DURATION))
        
        assert slots == [
            Slot(
                start=pendulum.parse("2024-11-27 09:00", tz="Europe/Berlin"),
                end=pendulum.parse("2024-11-27 09:15", tz="Europe/Berlin")
            ),
            Slot(
                start=pendulum.parse("2024-11-27 09:15", tz="Europe/Berlin"),
                end=pendulum.parse("2024-11-27 09:30", tz="Europe/Berlin")
            ),
        ]
    
    def test_slot_ending_on_boundary_is_included(self):
        """A window that divides evenly keeps its last slot."""
        window = _window("2024-11-27 09:00", "2024-11-27 10:00")
        
        slots = list(slice_window(window))
        
        assert len(slots) == 4
        assert slots[-1].end == window.end
    
    @pytest.mark.parametrize(
        "end, expected",
        [
            ("2024-11-27 09:14", 0),
            ("2024-11-27 09:15", 1),
            ("2024-11-27 09:29", 1),
            ("2024-11-27 17:00", 32),
        ],
    )
    def test_slot_count_is_floor_of_duration(self, end, expected):
        """The number of slots is floor(length / 15 min)."""
        window = _window("2024-11-27 09:00", end)
        
        assert len(list(slice_window(window))) == expected
    
    def test_slots_are_contiguous_and_fixed_size(self):
        """Each slot starts where the previous ended and lasts 15 minutes."""
        window = _window("2024-11-27 09:05", "2024-11-27 11:00")
        
        slots = list(slice_window(window))
        
        assert slots[0].start == window.start
        for previous, current in zip(slots, slots[1:]):
            assert current.start == previous.end
        assert all(slot.end - slot.start == SLOT_DURATION for slot in slots)
    
    def test_slicing_is_restartable(self):
        """Slicing the same window twice yields identical sequences."""
        window = _window("2024-11-27 09:00", "2024-11-27 12:00")
        
        assert list(slice_window(window)) == list(slice_window(window))
    
    def test_accepts_availability_window(self):
        """Stored availability windows can be sliced directly."""
        window = AvailabilityWindow(
            id=1,
            provider_id=1,
            start=pendulum.parse("2024-11-27 09:00", tz="Europe/Berlin"),
            end=pendulum.parse("2024-11-27 09:30", tz="Europe/Berlin")
        )
        
        assert len(list(slice_window(window))) == 2
    
    def test_custom_duration(self):
        window = _window("2024-11-27 09:00", "2024-11-27 10:00")
        
        slots = list(slice_window(window, pendulum.duration(minutes=25)))
        
        assert len(slots) == 2
    
    def test_non_positive_duration_is_rejected(self):
        window = _window("2024-11-27 09:00", "2024-11-27 10:00")
        
        with pytest.raises(ValueError, match="must be positive"):
            list(slice_window(window, pendulum.duration(minutes=0)))


class TestIntervalHelpers:
    """Tests for overlaps and contains."""
    
    def test_overlaps_is_half_open(self):
        morning = _window("2024-11-27 09:00", "2024-11-27 10:00")
        adjacent = _window("2024-11-27 10:00", "2024-11-27 11:00")
        straddling = _window("2024-11-27 09:45", "2024-11-27 10:15")
        
        assert not overlaps(morning, adjacent)
        assert overlaps(morning, straddling)
        assert overlaps(straddling, adjacent)
    
    def test_contains(self):
        morning = _window("2024-11-27 09:00", "2024-11-27 12:00")
        
        assert contains(morning, _window("2024-11-27 09:00", "2024-11-27 09:15"))
        assert not contains(morning, _window("2024-11-27 11:50", "2024-11-27 12:05"))
