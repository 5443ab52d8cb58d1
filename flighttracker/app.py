"""
FlightTracker composition.

Builds a ready-to-use TrackingController from configuration:
- Logging
- Database schema
- AirLabs flight data source
- Unsplash images provider (when an access key is configured)
- Cache-aside repository

Usage:
    from flighttracker.app import create_tracker

    tracker = create_tracker()
    tracker.add_snapshot_callback(print)
    tracker.search('BA 100')
"""

import logging
from typing import Optional

from sqlalchemy.orm import sessionmaker

from flighttracker.config import AppConfig, config as default_config
from flighttracker.ingestion import AirLabsClient, FlightDataSource
from flighttracker.interpolation import InterpolationEngine
from flighttracker.models import SessionLocal, init_db
from flighttracker.models.base import make_engine, make_session_factory
from flighttracker.repository import FlightCacheRepository
from flighttracker.services import ImagesProvider, UnsplashClient, UnsplashImagesProvider
from flighttracker.store import FlightStore
from flighttracker.tracking import TrackingController

logger = logging.getLogger(__name__)


def configure_logging(debug: bool = False) -> None:
    """Apply the standard log format."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def create_tracker(
    app_config: Optional[AppConfig] = None,
    session_factory: Optional[sessionmaker] = None,
    data_source: Optional[FlightDataSource] = None,
    images_provider: Optional[ImagesProvider] = None,
) -> TrackingController:
    """
    Factory for a fully wired tracking controller.

    Args:
        app_config: Configuration to use (module config if None)
        session_factory: Session factory for the store. If None, the
                         application's SessionLocal is used when
                         app_config is the module config, otherwise a
                         new engine is created from app_config.database.
        data_source: Overrides the AirLabs client
        images_provider: Overrides the Unsplash provider

    Returns:
        TrackingController in the idle state
    """
    cfg = app_config or default_config
    configure_logging(cfg.debug)

    if session_factory is None:
        if cfg.database.url == default_config.database.url:
            session_factory = SessionLocal
        else:
            session_factory = make_session_factory(make_engine(cfg.database.url, echo=cfg.debug))

    logger.info('Initializing database...')
    init_db(session_factory.kw['bind'])

    if data_source is None:
        if not cfg.airlabs.is_configured:
            logger.warning('No AirLabs API key configured. Set AIRLABS_API_KEY in .env')
        data_source = AirLabsClient.from_config(cfg.airlabs)

    if images_provider is None and cfg.unsplash.is_configured:
        images_provider = UnsplashImagesProvider(UnsplashClient.from_config(cfg.unsplash))
    elif images_provider is None:
        logger.info('Unsplash not configured, flight images disabled')

    repository = FlightCacheRepository(
        store=FlightStore(session_factory),
        source=data_source,
        cache_validity_seconds=cfg.cache.validity_seconds,
    )

    return TrackingController(
        repository=repository,
        images_provider=images_provider,
        engine=InterpolationEngine(cfg.tracking.debounce_seconds),
        tick_interval=cfg.tracking.tick_interval_seconds,
    )
