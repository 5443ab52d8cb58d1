"""
Configuration management for FlightTracker.

Loads settings from environment variables with sensible defaults.
All configuration is centralized here so API keys and base URLs are
handed to the clients at construction instead of being read ad hoc.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class AirLabsConfig:
    """AirLabs API configuration for live flight data."""
    api_key: Optional[str] = os.getenv('AIRLABS_API_KEY') or None
    base_url: str = os.getenv('AIRLABS_BASE_URL', 'https://airlabs.co/api/v9')
    timeout_seconds: int = 10
    min_request_interval: float = float(os.getenv('AIRLABS_MIN_REQUEST_INTERVAL', '1.0'))

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class UnsplashConfig:
    """Unsplash API configuration for airport and aircraft pictures."""
    access_key: Optional[str] = os.getenv('UNSPLASH_ACCESS_KEY') or None
    base_url: str = os.getenv('UNSPLASH_BASE_URL', 'https://api.unsplash.com')
    timeout_seconds: int = 10

    @property
    def is_configured(self) -> bool:
        return bool(self.access_key)


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    url: str = os.getenv('DATABASE_URL', 'sqlite:///flighttracker.db')

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith('sqlite')

    @property
    def is_memory(self) -> bool:
        return self.url in ('sqlite://', 'sqlite:///:memory:')


@dataclass(frozen=True)
class CacheConfig:
    """Flight cache policy."""
    # Fixed policy: at most one upstream call per flight per window
    validity_seconds: int = 300


@dataclass(frozen=True)
class TrackingConfig:
    """Position simulation settings."""
    tick_interval_seconds: float = float(os.getenv('TICK_INTERVAL_SECONDS', '1.0'))
    debounce_seconds: float = 5.0


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    airlabs: AirLabsConfig
    unsplash: UnsplashConfig
    database: DatabaseConfig
    cache: CacheConfig
    tracking: TrackingConfig

    debug: bool


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        airlabs=AirLabsConfig(),
        unsplash=UnsplashConfig(),
        database=DatabaseConfig(),
        cache=CacheConfig(),
        tracking=TrackingConfig(),
        debug=os.getenv('FLIGHTTRACKER_DEBUG', '0') == '1',
    )


# Singleton instance
config = load_config()
