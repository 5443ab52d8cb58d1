"""
Spherical-earth geometry.

Earth is modelled as a sphere of radius 6,371 km. That is accurate to
well under a percent for the distances a flight covers between two
upstream updates, which is all dead reckoning needs.
"""

import math
from typing import NamedTuple

EARTH_RADIUS_M = 6371000.0
EARTH_RADIUS_KM = EARTH_RADIUS_M / 1000.0


class Coordinate(NamedTuple):
    """WGS84 position in decimal degrees."""
    latitude: float
    longitude: float


def normalize_longitude(longitude: float) -> float:
    """Wrap a longitude into [-180, 180)."""
    return (longitude + 180.0) % 360.0 - 180.0


def project(
    origin: Coordinate,
    distance_m: float,
    bearing_deg: float,
    normalize: bool = True,
) -> Coordinate:
    """
    Destination point given a start point, distance and initial bearing.

    Forward (direct) great-circle formula:

        δ = d / R
        lat2 = asin(sin lat1 · cos δ + cos lat1 · sin δ · cos θ)
        lon2 = lon1 + atan2(sin θ · sin δ · cos lat1, cos δ − sin lat1 · sin lat2)

    Args:
        origin: Start coordinate in degrees
        distance_m: Distance travelled in meters
        bearing_deg: Direction of travel in degrees (0 = north, 90 = east)
        normalize: Wrap the resulting longitude into [-180, 180)

    Returns:
        Destination coordinate in degrees
    """
    angular_distance = distance_m / EARTH_RADIUS_M
    bearing = math.radians(bearing_deg)
    lat1 = math.radians(origin.latitude)
    lon1 = math.radians(origin.longitude)

    lat2 = math.asin(
        math.sin(lat1) * math.cos(angular_distance) +
        math.cos(lat1) * math.sin(angular_distance) * math.cos(bearing)
    )
    lon2 = lon1 + math.atan2(
        math.sin(bearing) * math.sin(angular_distance) * math.cos(lat1),
        math.cos(angular_distance) - math.sin(lat1) * math.sin(lat2)
    )

    longitude = math.degrees(lon2)
    if normalize:
        longitude = normalize_longitude(longitude)

    return Coordinate(math.degrees(lat2), longitude)


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometers; the inverse check of project()."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    half_dphi = math.radians(lat2 - lat1) / 2
    half_dlambda = math.radians(lon2 - lon1) / 2

    h = math.sin(half_dphi) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(half_dlambda) ** 2
    # Rounding can push h a hair past 1 for antipodal points
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(h, 1.0)))
