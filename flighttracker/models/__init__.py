"""
Data models for FlightTracker.

FlightSnapshot is the immutable domain value passed between layers;
FlightRecord is its persisted form with the cache freshness stamp.
"""

from flighttracker.models.base import Base, engine, SessionLocal, init_db, get_session, utcnow
from flighttracker.models.snapshot import (
    FlightSnapshot,
    FlightImages,
    FlightStatus,
    normalize_flight_id,
    normalize_status,
)
from flighttracker.models.flight_record import FlightRecord

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'init_db',
    'get_session',
    'utcnow',
    'FlightSnapshot',
    'FlightImages',
    'FlightStatus',
    'normalize_flight_id',
    'normalize_status',
    'FlightRecord',
]
