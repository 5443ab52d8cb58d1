"""
Flight store - SQLAlchemy persistence of FlightRecord rows.

A thin key-value layer keyed by flight IATA code. Every operation runs
in its own session so records handed back are detached snapshots of
the row at that moment. SQLAlchemy errors are re-raised as
PersistenceFailure so callers never need to import SQLAlchemy.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Generator, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from flighttracker.errors import PersistenceFailure
from flighttracker.models.base import get_session
from flighttracker.models.flight_record import FlightRecord
from flighttracker.models.snapshot import FlightSnapshot

logger = logging.getLogger(__name__)


class FlightStore:
    """Persistent flight records, at most one per flight id."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        """
        Args:
            session_factory: Session factory to use (the application's
                             SessionLocal if None)
        """
        self._session_factory = session_factory

    @contextmanager
    def _session(self, operation: str) -> Generator[Session, None, None]:
        try:
            with get_session(self._session_factory) as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f'Flight store {operation} failed: {e}')
            raise PersistenceFailure(f'Flight store {operation} failed: {e}') from e

    def get(self, flight_id: str) -> Optional[FlightRecord]:
        """Record for a flight, or None if never stored."""
        with self._session('read') as session:
            return session.get(FlightRecord, flight_id)

    def upsert(self, snapshot: FlightSnapshot, fetched_at: datetime) -> FlightRecord:
        """
        Insert or update the record for snapshot.id.

        An existing row is updated in place (see FlightRecord.apply), so
        repeated fetches never create a second row for the same flight.
        """
        with self._session('upsert') as session:
            record = session.get(FlightRecord, snapshot.id)
            if record is None:
                record = FlightRecord.from_snapshot(snapshot, fetched_at)
                session.add(record)
                logger.debug(f'Inserted record for {snapshot.id}')
            else:
                record.apply(snapshot, fetched_at)
                logger.debug(f'Updated record for {snapshot.id}')
            session.flush()
            return record

    def insert(self, snapshot: FlightSnapshot, saved_at: datetime) -> FlightRecord:
        """
        Insert a new record.

        Raises:
            PersistenceFailure: if a record for snapshot.id already exists
        """
        with self._session('insert') as session:
            record = FlightRecord.from_snapshot(snapshot, saved_at)
            session.add(record)
            session.flush()
            return record

    def delete(self, flight_id: str) -> bool:
        """Delete a record. Returns False if there was nothing to delete."""
        with self._session('delete') as session:
            record = session.get(FlightRecord, flight_id)
            if record is None:
                return False
            session.delete(record)
            return True

    def list_all(self) -> List[FlightRecord]:
        """All records, most recently updated first."""
        with self._session('list') as session:
            stmt = select(FlightRecord).order_by(desc(FlightRecord.last_updated))
            return list(session.scalars(stmt).all())
