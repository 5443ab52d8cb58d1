"""
Flight image service - pictures of the destination airport and aircraft.

Purely decorative: callers treat every failure here as non-fatal. The
two searches are independent, so they run concurrently.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Protocol

import requests

from flighttracker.config import UnsplashConfig, config
from flighttracker.errors import ImageFetchFailure
from flighttracker.models.snapshot import FlightImages, FlightSnapshot

logger = logging.getLogger(__name__)


class ImagesProvider(Protocol):
    """Anything that can find pictures for a flight."""

    def get_images(self, snapshot: FlightSnapshot) -> FlightImages:
        ...


class UnsplashClient:
    """Client for the Unsplash photo search API."""

    def __init__(
        self,
        access_key: Optional[str] = None,
        base_url: str = 'https://api.unsplash.com',
        timeout: float = 10,
    ):
        self.access_key = access_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()

        if not self.access_key:
            logger.warning('Unsplash access key not configured - image lookups disabled')

    @classmethod
    def from_config(cls, unsplash: Optional[UnsplashConfig] = None) -> 'UnsplashClient':
        """Create client from application configuration."""
        unsplash = unsplash or config.unsplash
        return cls(
            access_key=unsplash.access_key,
            base_url=unsplash.base_url,
            timeout=unsplash.timeout_seconds,
        )

    def search_photos(self, query: str, page: int = 1, per_page: int = 1) -> List[dict]:
        """
        Search photos.

        Returns the raw `results` list of the search response.

        Raises:
            ImageFetchFailure on missing credentials, network or HTTP errors
        """
        if not self.access_key:
            raise ImageFetchFailure('Unsplash access key not configured')

        try:
            response = self.session.get(
                f'{self.base_url}/search/photos',
                params={'query': query, 'page': page, 'per_page': per_page},
                headers={'Authorization': f'Client-ID {self.access_key}'},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise ImageFetchFailure(f'Unsplash search failed: {e}') from e
        except ValueError as e:
            raise ImageFetchFailure('Unsplash returned an invalid response') from e

        if not isinstance(data, dict):
            raise ImageFetchFailure('Unsplash returned an invalid response')
        results = data.get('results') or []
        if not isinstance(results, list):
            raise ImageFetchFailure('Unsplash returned an invalid response')
        return results

    def fetch_single_image_url(self, query: str) -> Optional[str]:
        """URL of the first search result ('regular' size), or None."""
        results = self.search_photos(query, page=1, per_page=1)
        if not results:
            logger.debug(f'No Unsplash photo for {query!r}')
            return None

        first = results[0]
        if not isinstance(first, dict):
            raise ImageFetchFailure('Unsplash returned an invalid response')
        urls = first.get('urls')
        if not isinstance(urls, dict):
            return None
        return urls.get('regular')


class UnsplashImagesProvider:
    """ImagesProvider backed by Unsplash photo search."""

    def __init__(self, client: UnsplashClient):
        self.client = client

    @staticmethod
    def airport_query(snapshot: FlightSnapshot) -> str:
        """Search terms for the destination airport, falling back to the origin."""
        if snapshot.arrival_iata:
            return f'{snapshot.arrival_iata} airport'
        if snapshot.departure_iata:
            return f'{snapshot.departure_iata} airport'
        return 'airport'

    @staticmethod
    def aircraft_query(snapshot: FlightSnapshot) -> str:
        return f'{snapshot.id} aircraft'

    def get_images(self, snapshot: FlightSnapshot) -> FlightImages:
        """
        Look up airport and aircraft pictures concurrently.

        Raises:
            ImageFetchFailure if either search fails
        """
        with ThreadPoolExecutor(max_workers=2) as pool:
            airport = pool.submit(self.client.fetch_single_image_url, self.airport_query(snapshot))
            aircraft = pool.submit(self.client.fetch_single_image_url, self.aircraft_query(snapshot))

            return FlightImages(
                airport_url=airport.result(),
                aircraft_url=aircraft.result(),
            )
