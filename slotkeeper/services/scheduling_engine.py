"""
Application service that derives bookable slots and admits reservations.

The engine orchestrates the availability store and the reservation ledger.
It never touches storage itself; every mutation goes through the ledger,
which owns the serialization discipline. Both collaborators are typed as
protocols so tests can swap in stubs.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import timedelta
from typing import Iterator, List, Optional, Protocol

from pendulum import DateTime
from sqlalchemy.engine import Engine

from ..adapters.availability_store import AvailabilityStore
from ..adapters.database import build_engine, build_session_factory
from ..adapters.reservation_ledger import ReservationLedger
from ..config import AppConfig
from ..domain.exceptions import OutsideAvailability, SchedulingError
from ..domain.models import AvailabilityWindow, Slot, SlotStatus, TimeRange
from ..domain.time_window import GRACE_PERIOD, SLOT_DURATION, contains, slice_window

logger = logging.getLogger(__name__)


class AvailabilityStoreProtocol(Protocol):
    """Availability behaviour needed by the engine."""

    def add_window(self, provider_id: int, start: DateTime, end: DateTime) -> int:
        """Store a window and return its id."""

    def list_windows(self, provider_id: int) -> List[AvailabilityWindow]:
        """Return windows in insertion order."""


class ReservationLedgerProtocol(Protocol):
    """Reservation behaviour needed by the engine."""

    lead_time: timedelta

    def create(
        self,
        provider_id: int,
        client_name: str,
        start: DateTime,
        end: DateTime,
        now: DateTime,
    ) -> int:
        """Insert an unconfirmed reservation and return its id."""

    def confirm(self, reservation_id: int) -> None:
        """Confirm a reservation."""

    def expire_older_than(self, now: DateTime, grace: timedelta) -> int:
        """Delete stale unconfirmed reservations and return the count."""

    def list_slots_status(self, provider_id: int, slots: List[Slot]) -> List[SlotStatus]:
        """Join slots with confirmed reservations."""


@contextmanager
def _operation(name: str) -> Iterator[None]:
    """Tag any scheduling error raised inside the block with the operation name."""
    try:
        yield
    except SchedulingError as exc:
        if exc.operation is None:
            exc.operation = name
        raise


class SchedulingEngine:
    """
    Entry point for the five public scheduling operations.

    "Available" slots are the slots derivable from declared availability;
    they are not filtered against reservations. Use ``slot_status`` to see
    which slots are already confirmed.
    """

    def __init__(
        self,
        availability_store: AvailabilityStoreProtocol,
        ledger: ReservationLedgerProtocol,
        *,
        slot_duration: timedelta = SLOT_DURATION,
        grace_period: timedelta = GRACE_PERIOD,
        require_availability: bool = False,
    ) -> None:
        self._availability_store = availability_store
        self._ledger = ledger
        self.slot_duration = slot_duration
        self.grace_period = grace_period
        self.require_availability = require_availability

    @classmethod
    def from_config(cls, config: AppConfig, engine: Optional[Engine] = None) -> "SchedulingEngine":
        """Wire a database-backed engine from application configuration."""
        session_factory = build_session_factory(engine or build_engine(config.database_url))
        scheduling = config.scheduling

        return cls(
            availability_store=AvailabilityStore(session_factory),
            ledger=ReservationLedger(
                session_factory,
                lead_time=scheduling.lead_time(),
                strict_confirm=scheduling.strict_confirm,
            ),
            slot_duration=scheduling.slot_duration(),
            grace_period=scheduling.grace_period(),
            require_availability=scheduling.require_availability,
        )

    def add_availability(self, provider_id: int, start: DateTime, end: DateTime) -> int:
        """Declare a new availability window for a provider."""
        with _operation("AddAvailability"):
            return self._availability_store.add_window(provider_id, start, end)

    def get_available_slots(self, provider_id: int) -> List[Slot]:
        """
        Derive every slot from the provider's windows, in window order.

        Overlapping windows yield duplicate slots; they are not merged.
        """
        with _operation("ListAvailableSlots"):
            windows = self._availability_store.list_windows(provider_id)

        slots: List[Slot] = []
        for window in windows:
            slots.extend(slice_window(window, self.slot_duration))

        logger.debug(
            "Provider %s: derived %d slot(s) from %d window(s)",
            provider_id, len(slots), len(windows),
        )
        return slots

    def request_reservation(
        self,
        *,
        provider_id: int,
        client_name: str,
        start: DateTime,
        end: DateTime,
        now: DateTime,
    ) -> int:
        """
        Admit a reservation request and return the new reservation id.

        Lead time and confirmed-slot conflicts are enforced by the ledger.
        When ``require_availability`` is set, the requested range must also
        fall inside one of the provider's windows.
        """
        with _operation("CreateReservation"):
            # Lead-time violations take precedence and are reported by the ledger.
            if self.require_availability and start >= now + self._ledger.lead_time:
                self._ensure_within_availability(provider_id, start, end)

            return self._ledger.create(provider_id, client_name, start, end, now)

    def confirm_reservation(self, reservation_id: int) -> None:
        with _operation("ConfirmReservation"):
            self._ledger.confirm(reservation_id)

    def run_cleanup(self, now: DateTime) -> int:
        """Remove unconfirmed reservations older than the grace period."""
        with _operation("RunCleanup"):
            return self._ledger.expire_older_than(now, self.grace_period)

    def slot_status(self, provider_id: int) -> List[SlotStatus]:
        """Derived slots annotated with the confirmed reservation holding each."""
        slots = self.get_available_slots(provider_id)
        with _operation("ListSlotsStatus"):
            return self._ledger.list_slots_status(provider_id, slots)

    def _ensure_within_availability(self, provider_id: int, start: DateTime, end: DateTime) -> None:
        if start >= end:
            # Leave the interval error to the ledger, after the lead-time check.
            return

        requested = TimeRange(start=start, end=end)
        windows = self._availability_store.list_windows(provider_id)
        if not any(contains(window, requested) for window in windows):
            raise OutsideAvailability(
                f"Requested time {requested} is outside the availability of provider {provider_id}"
            )
