"""
External integration services.

Handles third-party API calls that decorate a tracked flight and may
fail without affecting tracking.
"""

from flighttracker.services.images import ImagesProvider, UnsplashClient, UnsplashImagesProvider

__all__ = ['ImagesProvider', 'UnsplashClient', 'UnsplashImagesProvider']
