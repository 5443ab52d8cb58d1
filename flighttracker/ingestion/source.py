"""Upstream flight data capability."""

from typing import Optional, Protocol

from flighttracker.models.snapshot import FlightSnapshot


class FlightDataSource(Protocol):
    """
    Anything that can look up one flight by IATA code.

    Implementations return None when the upstream knows no such flight
    and raise SourceUnavailable when it cannot be asked.
    """

    def fetch(self, flight_id: str) -> Optional[FlightSnapshot]:
        ...
