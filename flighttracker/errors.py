"""
Error taxonomy for flight tracking.

The repository's fetch path only raises subclasses of FlightTrackerError,
so callers can handle every failure with a single except clause and still
tell a network problem from a storage problem. A flight that does not
exist is not an error: lookups return None for it.
"""


class FlightTrackerError(Exception):
    """Base class for all tracking failures."""


class SourceUnavailable(FlightTrackerError):
    """The upstream flight data API could not be reached or refused the request."""


class PersistenceFailure(FlightTrackerError):
    """Reading from or writing to the flight store failed."""


class ImageFetchFailure(FlightTrackerError):
    """Image lookup failed. Never surfaced as a tracking error."""
