"""
Database engine, session factory and table definitions.

Timestamps are stored as fixed-width UTC ISO-8601 text so that string
order in the database equals chronological order, and equality on
``start_time`` does not depend on the offset the caller used.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

import pendulum
from sqlalchemy import Boolean, Column, Index, Integer, String, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from ..domain.exceptions import StorageFailure
from ..domain.models import AvailabilityWindow, Reservation

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///slotkeeper.db"
IN_MEMORY_DATABASE_URL = "sqlite://"
STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"
WRITE_LOCK_OPTION = "slotkeeper_write_lock"

Base = declarative_base()


class IsoDateTime(TypeDecorator):
    """Timezone-aware datetime persisted as ``YYYY-MM-DDTHH:MM:SS.ffffff+00:00``."""

    impl = String(32)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return pendulum.instance(value).in_timezone("UTC").strftime(STORAGE_FORMAT)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return pendulum.parse(value)


class AvailabilityWindowRow(Base):
    __tablename__ = "availability_windows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider_id = Column(Integer, nullable=False, index=True)
    start_time = Column(IsoDateTime, nullable=False)
    end_time = Column(IsoDateTime, nullable=False)

    def to_domain(self) -> AvailabilityWindow:
        return AvailabilityWindow(
            id=self.id,
            provider_id=self.provider_id,
            start=self.start_time,
            end=self.end_time,
        )


class ReservationRow(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider_id = Column(Integer, nullable=False)
    client_name = Column(String(255), nullable=False)
    start_time = Column(IsoDateTime, nullable=False)
    end_time = Column(IsoDateTime, nullable=False)
    confirmed = Column(Boolean, nullable=False, default=False)
    created_at = Column(IsoDateTime, nullable=False)

    __table_args__ = (
        Index("ix_reservations_provider_start", "provider_id", "start_time"),
    )

    def to_domain(self) -> Reservation:
        return Reservation(
            id=self.id,
            provider_id=self.provider_id,
            client_name=self.client_name,
            start=self.start_time,
            end=self.end_time,
            confirmed=bool(self.confirmed),
            created_at=self.created_at,
        )


def build_engine(database_url: str = DEFAULT_DATABASE_URL) -> Engine:
    """
    Create an engine for ``database_url`` and make sure the tables exist.

    In-memory SQLite keeps a single shared connection so every session sees
    the same database; use it for tests and one-shot runs, and a file or
    server database when several threads share the engine.

    On SQLite, transactions opened through ``write_transaction`` start with
    ``BEGIN IMMEDIATE`` and so hold the database write lock from their first
    statement, also against other processes.
    """
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url == IN_MEMORY_DATABASE_URL or ":memory:" in database_url:
            kwargs["poolclass"] = StaticPool
    else:
        kwargs = {"pool_pre_ping": True, "pool_recycle": 300}

    try:
        engine = create_engine(database_url, **kwargs)
        if is_sqlite:
            _emit_sqlite_begin(engine)
        Base.metadata.create_all(engine)
    except SQLAlchemyError as exc:
        raise StorageFailure(f"Cannot open database {database_url}: {exc}") from exc

    logger.debug("Database ready at %s", engine.url.render_as_string(hide_password=True))
    return engine


def _emit_sqlite_begin(engine: Engine) -> None:
    # pysqlite defers BEGIN until the first write, so a read-then-write
    # transaction is not isolated from other connections. Take over BEGIN.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        if conn.get_execution_options().get(WRITE_LOCK_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def write_transaction(session_factory: sessionmaker) -> Iterator[Session]:
    """
    Open a session whose transaction holds the database write lock.

    Commits on success and rolls back on error. Callers should still lock
    the rows they read with ``with_for_update()`` for server databases.
    """
    with session_factory.begin() as session:
        session.connection(execution_options={WRITE_LOCK_OPTION: True})
        yield session


@contextmanager
def storage_guard(action: str) -> Iterator[None]:
    """Translate driver/ORM errors raised inside the block into StorageFailure."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Storage failure while trying to %s: %s", action, exc)
        raise StorageFailure(f"Could not {action}: {exc}") from exc
