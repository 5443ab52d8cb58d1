"""
Shared fixtures for FlightTracker tests.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from flighttracker.models.base import init_db, make_engine, make_session_factory
from flighttracker.models.snapshot import FlightSnapshot
from flighttracker.store import FlightStore

T0 = datetime(2025, 11, 20, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeSource:
    """FlightDataSource returning queued results and recording calls."""

    def __init__(self, results: Optional[list] = None, delay: float = 0):
        self.results = list(results or [])
        self.calls: List[str] = []
        self.delay = delay
        self._lock = threading.Lock()

    def fetch(self, flight_id: str) -> Optional[FlightSnapshot]:
        with self._lock:
            self.calls.append(flight_id)
            # The last queued result repeats forever
            if len(self.results) > 1:
                result = self.results.pop(0)
            else:
                result = self.results[0] if self.results else None
        if self.delay:
            threading.Event().wait(self.delay)
        if isinstance(result, Exception):
            raise result
        return result


def make_snapshot(flight_id: str = 'BA100', last_updated: datetime = T0, **overrides) -> FlightSnapshot:
    """London Heathrow -> New York JFK, cruising west."""
    fields = dict(
        id=flight_id,
        last_updated=last_updated,
        status='en-route',
        latitude=51.5,
        longitude=-0.12,
        altitude=11000.0,
        heading=270.0,
        horizontal_speed=900.0,
        departure_iata='LHR',
        arrival_iata='JFK',
        departure_date=T0 - timedelta(hours=1),
        arrival_date=T0 + timedelta(hours=7),
        departure_terminal='5',
        departure_gate='A10',
        arrival_terminal='7',
        arrival_gate='B22',
    )
    fields.update(overrides)
    return FlightSnapshot(**fields)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_factory():
    """Session factory on a fresh in-memory database."""
    engine = make_engine('sqlite://')
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return FlightStore(session_factory)
