"""
Reservation ledger: the only owner of reservation records.

Every mutation runs under a per-provider lock and inside a single database
transaction that holds the write lock from its first statement (row locks
on server databases), so the check-then-write sequences in ``create`` and
``confirm`` are atomic with respect to other ledger mutations, including
those of other processes sharing the database.
"""

from __future__ import annotations

import logging
import threading
from contextlib import ExitStack, contextmanager
from datetime import timedelta
from typing import Dict, Iterable, Iterator, List, Optional

from pendulum import DateTime
from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from ..domain.exceptions import InvalidInterval, LeadTimeViolation, NotFound, SlotTaken
from ..domain.models import Reservation, Slot, SlotStatus
from ..domain.time_window import GRACE_PERIOD, MIN_LEAD_TIME
from .database import ReservationRow, storage_guard, write_transaction

logger = logging.getLogger(__name__)


class ReservationLedger:
    """
    Creates, confirms and expires reservations.

    Lifecycle:
    UNCONFIRMED --confirm--> CONFIRMED (terminal)
    UNCONFIRMED --expire after grace--> deleted (terminal)

    With ``strict_confirm`` enabled, confirming a reservation whose slot is
    already held by another confirmed reservation fails with SlotTaken.
    With it disabled, confirm never re-checks and several reservations may
    end up confirmed for the same slot.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        lead_time: timedelta = MIN_LEAD_TIME,
        strict_confirm: bool = True,
    ):
        self._session_factory = session_factory
        self.lead_time = lead_time
        self.strict_confirm = strict_confirm
        self._locks: Dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def create(
        self,
        provider_id: int,
        client_name: str,
        start: DateTime,
        end: DateTime,
        now: DateTime,
    ) -> int:
        """
        Insert an unconfirmed reservation.

        Competing unconfirmed reservations for the same slot are allowed;
        only an already confirmed one blocks the request.

        Returns:
            Identifier of the new reservation

        Raises:
            LeadTimeViolation: If start is earlier than now + lead time
            InvalidInterval: If start is not before end
            SlotTaken: If a confirmed reservation holds (provider_id, start)
            StorageFailure: If the store fails
        """
        earliest = now + self.lead_time
        if start < earliest:
            logger.warning(
                "Provider %s: rejected reservation for %s starting %s, earliest allowed start is %s",
                provider_id, client_name, start, earliest,
            )
            raise LeadTimeViolation(
                f"Reservations must be made at least {_describe(self.lead_time)} in advance "
                f"(requested {start}, earliest {earliest})"
            )
        if start >= end:
            raise InvalidInterval(f"Reservation start {start} must be before end {end}")

        with self._provider_lock(provider_id):
            with storage_guard("create reservation"), write_transaction(self._session_factory) as session:
                holder = self._confirmed_holder(session, provider_id, start)
                if holder is not None:
                    logger.warning(
                        "Provider %s: slot %s already held by confirmed reservation %s",
                        provider_id, start, holder,
                    )
                    raise SlotTaken(f"Slot {start} for provider {provider_id} is already reserved")

                row = ReservationRow(
                    provider_id=provider_id,
                    client_name=client_name,
                    start_time=start,
                    end_time=end,
                    confirmed=False,
                    created_at=now,
                )
                session.add(row)
                session.flush()
                reservation_id = row.id

        logger.info(
            "Provider %s: created reservation %s for %s (%s - %s)",
            provider_id, reservation_id, client_name, start, end,
        )
        return reservation_id

    def confirm(self, reservation_id: int) -> None:
        """
        Mark a reservation as confirmed.

        Confirming an already confirmed reservation is a no-op.

        Raises:
            NotFound: If the reservation does not exist
            SlotTaken: If strict_confirm is on and another confirmed
                reservation holds the same slot
            StorageFailure: If the store fails
        """
        provider_id = self.get(reservation_id).provider_id

        with self._provider_lock(provider_id):
            with storage_guard("confirm reservation"), write_transaction(self._session_factory) as session:
                # Cleanup may have removed it since the lookup above.
                row = session.get(ReservationRow, reservation_id, with_for_update=True)
                if row is None:
                    raise NotFound(f"Reservation {reservation_id} not found")

                if row.confirmed:
                    logger.debug("Reservation %s already confirmed", reservation_id)
                    return

                if self.strict_confirm:
                    holder = self._confirmed_holder(
                        session, row.provider_id, row.start_time, exclude_id=row.id
                    )
                    if holder is not None:
                        logger.warning(
                            "Reservation %s: slot %s already held by confirmed reservation %s",
                            reservation_id, row.start_time, holder,
                        )
                        raise SlotTaken(
                            f"Slot {row.start_time} for provider {row.provider_id} "
                            f"is already confirmed by reservation {holder}"
                        )

                row.confirmed = True

        logger.info("Provider %s: confirmed reservation %s", provider_id, reservation_id)

    def expire_older_than(self, now: DateTime, grace: timedelta = GRACE_PERIOD) -> int:
        """
        Delete unconfirmed reservations created before ``now - grace``.

        Confirmed reservations are never removed, whatever their age.

        Returns:
            Number of removed reservations
        """
        cutoff = now - grace

        with self._all_provider_locks():
            with storage_guard("expire reservations"), write_transaction(self._session_factory) as session:
                result = session.execute(
                    delete(ReservationRow)
                    .where(ReservationRow.confirmed.is_(False))
                    .where(ReservationRow.created_at < cutoff)
                    .execution_options(synchronize_session=False)
                )
                removed = result.rowcount or 0

        logger.info("Expired %d unconfirmed reservation(s) created before %s", removed, cutoff)
        return removed

    def get(self, reservation_id: int) -> Reservation:
        """Load one reservation or raise NotFound."""
        with storage_guard("load reservation"), self._session_factory() as session:
            row = session.get(ReservationRow, reservation_id)
            if row is None:
                raise NotFound(f"Reservation {reservation_id} not found")
            return row.to_domain()

    def list_for_provider(self, provider_id: int) -> List[Reservation]:
        """All reservations of a provider ordered by start time, then id."""
        with storage_guard("list reservations"), self._session_factory() as session:
            rows = session.scalars(
                select(ReservationRow)
                .where(ReservationRow.provider_id == provider_id)
                .order_by(ReservationRow.start_time, ReservationRow.id)
            ).all()
            return [row.to_domain() for row in rows]

    def list_slots_status(self, provider_id: int, slots: Iterable[Slot]) -> List[SlotStatus]:
        """
        Tell which of the given slots are held by a confirmed reservation.

        A slot is held when a confirmed reservation starts exactly at the
        slot start. If several are confirmed (permissive mode) the oldest id
        is reported.
        """
        held: Dict[float, int] = {}
        for reservation in self.list_for_provider(provider_id):
            if reservation.confirmed:
                held.setdefault(reservation.start.timestamp(), reservation.id)

        return [
            SlotStatus(slot=slot, reservation_id=held.get(slot.start.timestamp()))
            for slot in slots
        ]

    @staticmethod
    def _confirmed_holder(
        session: Session,
        provider_id: int,
        start: DateTime,
        exclude_id: Optional[int] = None,
    ) -> Optional[int]:
        # Lock every reservation of the slot, so competing confirms on a
        # server database queue behind each other.
        rows = session.execute(
            select(ReservationRow.id, ReservationRow.confirmed)
            .where(ReservationRow.provider_id == provider_id)
            .where(ReservationRow.start_time == start)
            .order_by(ReservationRow.id)
            .with_for_update()
        ).all()
        for reservation_id, confirmed in rows:
            if confirmed and reservation_id != exclude_id:
                return reservation_id
        return None

    def _provider_lock(self, provider_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(provider_id)
            if lock is None:
                lock = self._locks[provider_id] = threading.Lock()
            return lock

    @contextmanager
    def _all_provider_locks(self) -> Iterator[None]:
        """
        Hold every provider lock, acquired in id order.

        The registry guard stays held, so no new provider lock can be
        created and used until the block exits.
        """
        with self._locks_guard:
            with ExitStack() as stack:
                for key in sorted(self._locks):
                    stack.enter_context(self._locks[key])
                yield


def _describe(duration: timedelta) -> str:
    hours, remainder = divmod(int(duration.total_seconds()), 3600)
    if remainder == 0:
        return f"{hours} hours"
    return f"{int(duration.total_seconds() // 60)} minutes"
