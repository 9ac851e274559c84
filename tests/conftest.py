"""
Shared fixtures: a fresh in-memory database per test and a fixed clock.
"""

import pendulum
import pytest

from slotkeeper.adapters.availability_store import AvailabilityStore
from slotkeeper.adapters.database import IN_MEMORY_DATABASE_URL, build_engine, build_session_factory
from slotkeeper.adapters.reservation_ledger import ReservationLedger
from slotkeeper.services.scheduling_engine import SchedulingEngine

NOW = pendulum.parse("2024-11-25 09:00", tz="Europe/Berlin")


@pytest.fixture
def db_engine():
    engine = build_engine(IN_MEMORY_DATABASE_URL)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def store(session_factory):
    return AvailabilityStore(session_factory)


@pytest.fixture
def ledger(session_factory):
    return ReservationLedger(session_factory)


@pytest.fixture
def engine(store, ledger):
    return SchedulingEngine(availability_store=store, ledger=ledger)


@pytest.fixture
def now():
    return NOW
