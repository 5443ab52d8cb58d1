"""
FlightSnapshot - the immutable domain view of a tracked flight.

A snapshot is what the repository hands out and what the tracking
controller simulates. It never carries persistence metadata; the
store's freshness stamp lives on FlightRecord.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional


class FlightStatus(str, Enum):
    """
    Normalized flight status values.

    Upstream statuses are lowercased and passed through, so values
    outside this list are possible; these are the ones the sources
    are known to emit.
    """
    SCHEDULED = 'scheduled'
    EN_ROUTE = 'en-route'
    ACTIVE = 'active'
    LANDED = 'landed'
    ARRIVED = 'arrived'
    DELAYED = 'delayed'
    UNKNOWN = 'unknown'


def normalize_flight_id(raw: str) -> str:
    """Uppercase a flight code and drop all whitespace ('ba 100 ' -> 'BA100')."""
    return ''.join((raw or '').split()).upper()


def normalize_status(
    raw: Optional[str],
    departure_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Normalize an upstream status string.

    A flight whose departure is still in the future is 'scheduled'
    whatever the upstream says; otherwise the lowercased, trimmed
    status is used, falling back to 'unknown'.
    """
    if departure_date is not None and now is not None and departure_date > now:
        return FlightStatus.SCHEDULED.value
    cleaned = (raw or '').strip().lower()
    return cleaned or FlightStatus.UNKNOWN.value


@dataclass(frozen=True)
class FlightSnapshot:
    """
    Position and status of a flight at one instant.

    latitude/longitude of (0, 0) means no live position is known.
    horizontal_speed is in km/h, heading in degrees (0 = north).
    altitude is passed through in whatever unit the source reports.
    """
    id: str
    last_updated: datetime
    status: str = FlightStatus.UNKNOWN.value

    # Telemetry
    latitude: float = 0.0
    longitude: float = 0.0
    altitude: float = 0.0
    heading: float = 0.0
    horizontal_speed: float = 0.0

    # Route ('' = unknown airport)
    departure_iata: str = ''
    arrival_iata: str = ''
    departure_date: Optional[datetime] = None
    arrival_date: Optional[datetime] = None

    # Display metadata
    departure_terminal: Optional[str] = None
    departure_gate: Optional[str] = None
    arrival_terminal: Optional[str] = None
    arrival_gate: Optional[str] = None
    departure_time_zone_id: Optional[str] = None
    arrival_time_zone_id: Optional[str] = None

    @property
    def has_position(self) -> bool:
        """False for the (0, 0) no-position sentinel."""
        return not (self.latitude == 0 and self.longitude == 0)

    def with_position(self, latitude: float, longitude: float, at: datetime) -> 'FlightSnapshot':
        """Copy with a new position and timestamp; everything else unchanged."""
        return replace(self, latitude=latitude, longitude=longitude, last_updated=at)


@dataclass(frozen=True)
class FlightImages:
    """Pictures associated with a flight."""
    airport_url: Optional[str] = None
    aircraft_url: Optional[str] = None
