"""
Cache-aside flight repository.

Sits between the tracking controller and the rate-limited upstream API.
Every lookup checks the local store first; only a missing or stale
record costs an upstream request, and the answer is merged back into
the store before it is returned.

Design rationale:
Live flight data changes slowly compared to how often a user re-opens
or re-searches a flight, and the position in between is estimated
client-side anyway. A fixed 5-minute validity window therefore caps
upstream usage at one request per flight per window without the user
noticing stale data.

Failure policy:
Upstream and store failures are raised to the caller. A stale record is
never served as a fallback when the upstream fails.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from flighttracker.config import config
from flighttracker.errors import FlightTrackerError, SourceUnavailable
from flighttracker.ingestion.source import FlightDataSource
from flighttracker.models.base import ensure_utc, utcnow
from flighttracker.models.flight_record import FlightRecord
from flighttracker.models.snapshot import FlightSnapshot
from flighttracker.store import FlightStore

logger = logging.getLogger(__name__)


class FlightCacheRepository:
    """
    Source of truth for flight data.

    Concurrent get_flight() calls for the same id are serialized, so at
    most one upstream request per flight is in flight; a caller that
    waited behind a fetch is then served from the freshly filled cache.
    """

    def __init__(
        self,
        store: FlightStore,
        source: FlightDataSource,
        cache_validity_seconds: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.source = source
        self.cache_validity_seconds = (
            config.cache.validity_seconds if cache_validity_seconds is None else cache_validity_seconds
        )
        self._clock = clock or utcnow

        # One lock per flight id, with the number of callers holding or
        # waiting on it; the entry is dropped when that reaches zero
        self._flight_locks: Dict[str, Tuple[threading.Lock, int]] = {}
        self._locks_guard = threading.Lock()

        # Statistics
        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._fetches = 0
        self._not_found = 0

    @contextmanager
    def _flight_lock(self, flight_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock, users = self._flight_locks.get(flight_id, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._flight_locks[flight_id] = (lock, users + 1)

        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                _, users = self._flight_locks[flight_id]
                if users == 1:
                    del self._flight_locks[flight_id]
                else:
                    self._flight_locks[flight_id] = (lock, users - 1)

    def _count(self, counter: str) -> None:
        with self._stats_lock:
            setattr(self, counter, getattr(self, counter) + 1)

    def is_fresh(self, record: FlightRecord, now: Optional[datetime] = None) -> bool:
        """True while the record is younger than the validity window."""
        now = now or self._clock()
        age = (now - ensure_utc(record.last_updated)).total_seconds()
        return age < self.cache_validity_seconds

    def get_flight(self, flight_id: str) -> Optional[FlightSnapshot]:
        """
        Get a flight, from the cache if fresh, else from the upstream.

        Returns None if the upstream has no such flight; the store is
        left untouched in that case.

        Raises:
            SourceUnavailable: the upstream request failed
            PersistenceFailure: the store could not be read or written
        """
        with self._flight_lock(flight_id):
            record = self.store.get(flight_id)

            if record is not None and self.is_fresh(record):
                self._count('_hits')
                logger.debug(f'Cache hit for {flight_id}')
                return record.to_snapshot()

            self._count('_misses')
            if record is None:
                logger.info(f'Cache miss for {flight_id}, fetching from upstream')
            else:
                logger.info(f'Cached {flight_id} is stale, fetching from upstream')

            snapshot = self._fetch(flight_id)
            if snapshot is None:
                self._count('_not_found')
                logger.info(f'No flight data found for {flight_id}')
                return None

            if snapshot.id != flight_id:
                logger.debug(f'Upstream returned {snapshot.id!r} for {flight_id!r}, keeping requested key')
                snapshot = replace(snapshot, id=flight_id)

            record = self.store.upsert(snapshot, fetched_at=self._clock())
            return record.to_snapshot()

    def _fetch(self, flight_id: str) -> Optional[FlightSnapshot]:
        self._count('_fetches')
        try:
            return self.source.fetch(flight_id)
        except FlightTrackerError:
            raise
        except Exception as e:
            logger.error(f'Unexpected error fetching {flight_id}: {e}')
            raise SourceUnavailable(str(e)) from e

    def save_flight(self, snapshot: FlightSnapshot) -> None:
        """
        Persist a flight the user wants to keep.

        First write wins: if the flight is already stored this is a
        no-op. A new record is stamped fresh at the time of saving,
        whatever the snapshot's own timestamp says.

        Raises:
            PersistenceFailure: the store could not be read or written
        """
        with self._flight_lock(snapshot.id):
            if self.store.get(snapshot.id) is not None:
                logger.debug(f'{snapshot.id} already stored, save skipped')
                return

            self.store.insert(snapshot, saved_at=self._clock())
            logger.info(f'Saved flight {snapshot.id}')

    def list_saved(self) -> List[FlightRecord]:
        """Stored flights, most recently updated first."""
        return self.store.list_all()

    def delete_flight(self, flight_id: str) -> bool:
        """Remove a stored flight. Returns False if it was not stored."""
        with self._flight_lock(flight_id):
            deleted = self.store.delete(flight_id)
        if deleted:
            logger.info(f'Deleted flight {flight_id}')
        return deleted

    @property
    def stats(self) -> dict:
        """Get cache statistics."""
        with self._stats_lock:
            lookups = self._hits + self._misses
            return {
                'hits': self._hits,
                'misses': self._misses,
                'fetches': self._fetches,
                'not_found': self._not_found,
                'hit_rate': self._hits / lookups if lookups > 0 else 0,
            }
