"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .scheduling_engine import AvailabilityStoreProtocol, ReservationLedgerProtocol, SchedulingEngine

__all__ = ["AvailabilityStoreProtocol", "ReservationLedgerProtocol", "SchedulingEngine"]
