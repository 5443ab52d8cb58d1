"""
Upstream flight data for FlightTracker.

Defines the FlightDataSource capability and its AirLabs implementation.
"""

from flighttracker.ingestion.source import FlightDataSource
from flighttracker.ingestion.airlabs_client import AirLabsClient, AirLabsFlight

__all__ = ['FlightDataSource', 'AirLabsClient', 'AirLabsFlight']
