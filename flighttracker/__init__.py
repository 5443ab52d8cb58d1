"""
FlightTracker Package.

Live flight tracking from a rate-limited REST API, built with requests
and SQLAlchemy.

Modules:
    models/          FlightSnapshot domain value and FlightRecord ORM model
    ingestion/       FlightDataSource capability and the AirLabs client
    services/        ImagesProvider capability and the Unsplash client
    geo.py           Great-circle projection on a spherical earth
    interpolation.py Dead-reckoning between upstream updates
    store.py         SQLAlchemy persistence of flight records
    repository.py    Cache-aside repository with a 5-minute validity window
    tracking.py      Tracking controller (search, tick, save, stop)
    app.py           Composition of the above from configuration
    config.py        Centralized configuration from environment variables
"""

__version__ = '1.0.0'
