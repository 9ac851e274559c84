"""
Adapters layer - Persistence for availability windows and reservations.
"""

from .availability_store import AvailabilityStore
from .database import build_engine, build_session_factory
from .reservation_ledger import ReservationLedger

__all__ = ["AvailabilityStore", "ReservationLedger", "build_engine", "build_session_factory"]
