"""
Availability store: append-only provider availability windows.
"""

import logging
from typing import List

from pendulum import DateTime
from sqlalchemy.orm import sessionmaker

from ..domain.exceptions import InvalidInterval
from ..domain.models import AvailabilityWindow
from .database import AvailabilityWindowRow, storage_guard, write_transaction

logger = logging.getLogger(__name__)


class AvailabilityStore:
    """
    Holds availability windows per provider.

    Windows are never merged or checked against each other; a provider may
    declare overlapping windows.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def add_window(self, provider_id: int, start: DateTime, end: DateTime) -> int:
        """
        Store a new availability window.

        Returns:
            Identifier of the new window

        Raises:
            InvalidInterval: If start is not before end
            StorageFailure: If the window cannot be written
        """
        if start >= end:
            raise InvalidInterval(f"Window start {start} must be before end {end}")

        with storage_guard("add availability window"), write_transaction(self._session_factory) as session:
            row = AvailabilityWindowRow(provider_id=provider_id, start_time=start, end_time=end)
            session.add(row)
            session.flush()
            window_id = row.id

        logger.info("Provider %s: added availability window %s (%s - %s)", provider_id, window_id, start, end)
        return window_id

    def list_windows(self, provider_id: int) -> List[AvailabilityWindow]:
        """Return the provider's windows in insertion order (empty if none)."""
        with storage_guard("list availability windows"), self._session_factory() as session:
            rows = (
                session.query(AvailabilityWindowRow)
                .filter(AvailabilityWindowRow.provider_id == provider_id)
                .order_by(AvailabilityWindowRow.id)
                .all()
            )
            return [row.to_domain() for row in rows]
