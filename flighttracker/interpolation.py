"""
Position interpolation (dead reckoning) between upstream updates.

The flight data API is rate limited, so a snapshot can be minutes old
by the time it is displayed. Assuming constant speed and heading, the
aircraft has travelled speed x elapsed along its heading since the
snapshot was taken; the engine projects that distance over the sphere
to estimate where the aircraft is now.
"""

import logging
from datetime import datetime
from typing import Optional

from flighttracker.geo import Coordinate, project
from flighttracker.models.snapshot import FlightSnapshot

logger = logging.getLogger(__name__)

# 1 km/h = 0.277778 m/s
KMH_TO_MS = 0.277778

# Below this age a snapshot is returned as-is
DEBOUNCE_SECONDS = 5.0


class InterpolationEngine:
    """
    Stateless dead-reckoning calculator.

    Only latitude, longitude and last_updated ever change; status,
    altitude, heading, speed and route data pass through untouched.
    Positions at the (0, 0) sentinel are extrapolated like any other,
    so callers should check FlightSnapshot.has_position before trusting
    the result on a map.
    """

    def __init__(self, debounce_seconds: Optional[float] = None):
        self.debounce_seconds = DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds

    def interpolate(self, snapshot: FlightSnapshot, now: datetime) -> FlightSnapshot:
        """
        Estimate the snapshot's position at `now`.

        Returns the same snapshot object when it is younger than the
        debounce window, otherwise a copy with the projected position
        and last_updated set to `now`.
        """
        elapsed = (now - snapshot.last_updated).total_seconds()

        if elapsed < self.debounce_seconds:
            return snapshot

        # Negative speeds are upstream noise; never extrapolate backwards
        speed_ms = max(snapshot.horizontal_speed, 0.0) * KMH_TO_MS
        distance_m = speed_ms * elapsed

        destination = project(
            Coordinate(snapshot.latitude, snapshot.longitude),
            distance_m,
            snapshot.heading,
        )

        logger.debug(
            f'{snapshot.id}: {distance_m:.0f}m in {elapsed:.1f}s -> '
            f'({destination.latitude:.4f}, {destination.longitude:.4f})'
        )

        return snapshot.with_position(destination.latitude, destination.longitude, now)


def interpolate(snapshot: FlightSnapshot, now: datetime) -> FlightSnapshot:
    """Interpolate with the default debounce window."""
    return _default_engine.interpolate(snapshot, now)


_default_engine = InterpolationEngine()
