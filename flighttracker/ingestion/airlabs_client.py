"""
AirLabs API client.

Looks up a single flight's live data through the AirLabs v9 REST API:

    GET {base_url}/flight?api_key=...&flight_iata=BA100

Responses come wrapped in an envelope:

    {"request": {...}, "response": {...flight...}, "error": {"message", "code"}}

Flight fields used (all optional):
    flight_iata                  - IATA flight code
    lat, lng                     - WGS84 position
    alt                          - altitude
    dir                          - heading in degrees (0=north)
    speed                        - horizontal speed in km/h
    dep_iata, arr_iata           - airport codes
    dep_terminal, dep_gate       - departure terminal / gate
    arr_terminal, arr_gate       - arrival terminal / gate
    dep_time_ts, arr_time_ts     - Unix timestamps of departure / arrival
    updated                      - Unix timestamp of the reported position
    status                       - scheduled, en-route, landed, ...
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Any, Callable

import requests

from flighttracker.config import AirLabsConfig, config
from flighttracker.errors import SourceUnavailable
from flighttracker.models.base import utcnow
from flighttracker.models.snapshot import FlightSnapshot, normalize_flight_id, normalize_status

logger = logging.getLogger(__name__)


def _from_timestamp(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


@dataclass
class AirLabsFlight:
    """
    Parsed flight object from the AirLabs API.

    Normalizes the raw JSON into a typed dataclass.
    All values may be None if not reported.
    """
    flight_iata: Optional[str]
    flight_icao: Optional[str]
    reg_number: Optional[str]
    aircraft_icao: Optional[str]
    lat: Optional[float]
    lng: Optional[float]
    alt: Optional[float]
    dir: Optional[float]
    speed: Optional[float]
    dep_iata: Optional[str]
    dep_terminal: Optional[str]
    dep_gate: Optional[str]
    dep_time_ts: Optional[float]
    arr_iata: Optional[str]
    arr_terminal: Optional[str]
    arr_gate: Optional[str]
    arr_time_ts: Optional[float]
    updated: Optional[float]
    status: Optional[str]

    @classmethod
    def from_dict(cls, data: dict) -> 'AirLabsFlight':
        """Parse the `response` member of the envelope."""
        def text(key: str) -> Optional[str]:
            value = data.get(key)
            if value is None:
                return None
            return str(value).strip() or None

        def number(key: str) -> Optional[float]:
            value = data.get(key)
            if value is None:
                return None
            return float(value)

        return cls(
            flight_iata=text('flight_iata'),
            flight_icao=text('flight_icao'),
            reg_number=text('reg_number'),
            aircraft_icao=text('aircraft_icao'),
            lat=number('lat'),
            lng=number('lng'),
            alt=number('alt'),
            dir=number('dir'),
            speed=number('speed'),
            dep_iata=text('dep_iata'),
            dep_terminal=text('dep_terminal'),
            dep_gate=text('dep_gate'),
            dep_time_ts=number('dep_time_ts'),
            arr_iata=text('arr_iata'),
            arr_terminal=text('arr_terminal'),
            arr_gate=text('arr_gate'),
            arr_time_ts=number('arr_time_ts'),
            updated=number('updated'),
            status=text('status'),
        )

    def to_snapshot(self, now: datetime) -> Optional[FlightSnapshot]:
        """
        Convert to a domain snapshot.

        Returns None without a flight code. Missing telemetry becomes 0
        (so a flight without a live position sits at the (0, 0)
        sentinel) and missing airports become ''.
        """
        if not self.flight_iata:
            return None

        departure_date = _from_timestamp(self.dep_time_ts)

        return FlightSnapshot(
            id=normalize_flight_id(self.flight_iata),
            last_updated=_from_timestamp(self.updated) or now,
            status=normalize_status(self.status, departure_date, now),
            latitude=self.lat or 0.0,
            longitude=self.lng or 0.0,
            altitude=self.alt or 0.0,
            heading=self.dir or 0.0,
            horizontal_speed=self.speed or 0.0,
            departure_iata=self.dep_iata or '',
            arrival_iata=self.arr_iata or '',
            departure_date=departure_date,
            arrival_date=_from_timestamp(self.arr_time_ts),
            departure_terminal=self.dep_terminal,
            departure_gate=self.dep_gate,
            arrival_terminal=self.arr_terminal,
            arrival_gate=self.arr_gate,
        )


class AirLabsClient:
    """
    Client for the AirLabs flight API.

    Handles:
    - GET requests to the /flight endpoint
    - Decoding the request/response/error envelope
    - Rate limiting (minimum interval between requests)
    - Mapping every failure to SourceUnavailable
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = 'https://airlabs.co/api/v9',
        timeout: float = 10,
        min_request_interval: float = 1.0,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._min_interval = min_request_interval
        self._clock = clock or utcnow

        if not self.api_key:
            logger.warning('AirLabs API key not configured - flight lookups disabled')

        self.session = requests.Session()
        self.last_request_time: float = 0
        self._rate_lock = threading.Lock()
        self._requests_made = 0

    @classmethod
    def from_config(cls, airlabs: Optional[AirLabsConfig] = None) -> 'AirLabsClient':
        """Create client from application configuration."""
        airlabs = airlabs or config.airlabs
        return cls(
            api_key=airlabs.api_key,
            base_url=airlabs.base_url,
            timeout=airlabs.timeout_seconds,
            min_request_interval=airlabs.min_request_interval,
        )

    def _wait_for_rate_limit(self) -> None:
        """
        Enforce minimum interval between requests.

        Claims the next request slot under a lock, so concurrent lookups
        for different flights still go out one interval apart.
        """
        with self._rate_lock:
            elapsed = time.time() - self.last_request_time
            if elapsed < self._min_interval:
                sleep_time = self._min_interval - elapsed
                logger.debug(f'Rate limiting: sleeping {sleep_time:.1f}s')
                time.sleep(sleep_time)
            self.last_request_time = time.time()

    def fetch(self, flight_id: str) -> Optional[FlightSnapshot]:
        """
        Fetch live data for one flight.

        Args:
            flight_id: IATA flight code; whitespace is removed and the
                       code uppercased before the request

        Returns:
            FlightSnapshot, or None if AirLabs returned no flight

        Raises:
            SourceUnavailable on network, HTTP, envelope or decoding errors
        """
        if not self.api_key:
            raise SourceUnavailable('AirLabs API key not configured')

        flight_iata = normalize_flight_id(flight_id)
        payload = self._get('flight', {'flight_iata': flight_iata})

        error = payload.get('error')
        if error:
            message = error.get('message', 'Unknown error') if isinstance(error, dict) else str(error)
            code = error.get('code', 'unknown') if isinstance(error, dict) else 'unknown'
            logger.warning(f'AirLabs API error for {flight_iata}: {message} ({code})')
            raise SourceUnavailable(f'{message} ({code})')

        response = payload.get('response')
        if not response:
            logger.debug(f'No flight data found for {flight_iata}')
            return None

        try:
            snapshot = AirLabsFlight.from_dict(response).to_snapshot(self._clock())
        except (TypeError, ValueError, AttributeError) as e:
            logger.error(f'Error parsing AirLabs flight {flight_iata}: {e}')
            raise SourceUnavailable(f'Invalid flight data from AirLabs: {e}') from e

        if snapshot:
            logger.info(f'Got {snapshot.id}: {snapshot.departure_iata or "?"} -> '
                        f'{snapshot.arrival_iata or "?"} ({snapshot.status})')
        return snapshot

    def _get(self, endpoint: str, params: dict) -> Any:
        """GET an endpoint and return the decoded JSON envelope."""
        self._wait_for_rate_limit()

        url = f'{self.base_url}/{endpoint}'
        logger.debug(f'Fetching {url} params={params}')

        try:
            response = self.session.get(
                url,
                params={'api_key': self.api_key, **params},
                timeout=self.timeout,
            )
            self._requests_made += 1

            response.raise_for_status()
            data = response.json()

        except requests.exceptions.Timeout as e:
            logger.error('AirLabs API timeout')
            raise SourceUnavailable(f'AirLabs request timed out after {self.timeout}s') from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else '?'
            if status == 429:
                logger.warning('AirLabs rate limit exceeded')
            else:
                logger.error(f'AirLabs API error: {status}')
            raise SourceUnavailable(f'AirLabs returned HTTP {status}') from e
        except requests.exceptions.RequestException as e:
            logger.error(f'AirLabs request failed: {e}')
            raise SourceUnavailable(f'AirLabs request failed: {e}') from e
        except ValueError as e:
            logger.error(f'Error parsing AirLabs response: {e}')
            raise SourceUnavailable('AirLabs returned an invalid response') from e

        if not isinstance(data, dict):
            raise SourceUnavailable('AirLabs returned an invalid response')
        return data

    @property
    def stats(self) -> dict:
        """Get client statistics."""
        return {
            'requests_made': self._requests_made,
            'api_configured': bool(self.api_key),
        }
