"""
FlightRecord model - persisted state of a looked-up flight.

One row per flight IATA code. The row is created on the first
successful fetch (or an explicit save) and updated in place on every
later fetch, so the table never holds two rows for the same flight.

Design notes:
- last_updated is the store's own freshness stamp and the only input
  to cache validity decisions
- position_updated is the time the upstream reported the stored
  position, which is what dead reckoning extrapolates from
- Interpolated positions are never written here
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Float, Index
from sqlalchemy.orm import Mapped, mapped_column

from flighttracker.models.base import Base, UTCDateTime, ensure_utc
from flighttracker.models.snapshot import FlightSnapshot, FlightStatus


class FlightRecord(Base):
    """
    Cached flight data keyed by IATA flight code.

    Mirrors FlightSnapshot field for field, plus the persistence
    timestamps.
    """

    __tablename__ = 'flight_records'

    # Primary key - normalized IATA flight code
    flight_iata: Mapped[str] = mapped_column(
        String(16),
        primary_key=True,
        comment='IATA flight code (e.g., BA100)'
    )

    last_updated: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        comment='When this row was last fetched or saved'
    )

    position_updated: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        comment='When the upstream reported the stored position'
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=FlightStatus.UNKNOWN.value,
        comment='Normalized flight status'
    )

    # Position (WGS84), 0/0 when unknown
    latitude: Mapped[float] = mapped_column(Float, default=0.0)
    longitude: Mapped[float] = mapped_column(Float, default=0.0)

    altitude: Mapped[float] = mapped_column(
        Float,
        default=0.0,
        comment='Altitude as reported by the source'
    )

    heading: Mapped[float] = mapped_column(
        Float,
        default=0.0,
        comment='Direction of travel in degrees (0-360)'
    )

    horizontal_speed: Mapped[float] = mapped_column(
        Float,
        default=0.0,
        comment='Ground speed in km/h'
    )

    # Route
    departure_iata: Mapped[str] = mapped_column(String(8), default='')
    arrival_iata: Mapped[str] = mapped_column(String(8), default='')
    departure_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    arrival_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Display metadata
    departure_terminal: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    departure_gate: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    arrival_terminal: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    arrival_gate: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    departure_time_zone_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    arrival_time_zone_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        # History view lists newest first
        Index('ix_flight_records_last_updated', 'last_updated'),
    )

    def __repr__(self) -> str:
        return f'<FlightRecord {self.flight_iata} {self.status} @ {self.last_updated}>'

    @classmethod
    def from_snapshot(cls, snapshot: FlightSnapshot, last_updated: datetime) -> 'FlightRecord':
        """New row for a snapshot, stamped fresh at last_updated."""
        return cls(
            flight_iata=snapshot.id,
            last_updated=ensure_utc(last_updated),
            position_updated=ensure_utc(snapshot.last_updated),
            status=snapshot.status,
            latitude=snapshot.latitude,
            longitude=snapshot.longitude,
            altitude=snapshot.altitude,
            heading=snapshot.heading,
            horizontal_speed=snapshot.horizontal_speed,
            departure_iata=snapshot.departure_iata,
            arrival_iata=snapshot.arrival_iata,
            departure_date=snapshot.departure_date,
            arrival_date=snapshot.arrival_date,
            departure_terminal=snapshot.departure_terminal,
            departure_gate=snapshot.departure_gate,
            arrival_terminal=snapshot.arrival_terminal,
            arrival_gate=snapshot.arrival_gate,
            departure_time_zone_id=snapshot.departure_time_zone_id,
            arrival_time_zone_id=snapshot.arrival_time_zone_id,
        )

    def apply(self, snapshot: FlightSnapshot, last_updated: datetime) -> None:
        """
        Merge a freshly fetched snapshot into this row.

        Telemetry, status, terminals and gates are overwritten. Route
        fields the upstream left out (empty airport codes, missing
        dates or time zones) keep their stored values.
        """
        self.last_updated = ensure_utc(last_updated)
        self.position_updated = ensure_utc(snapshot.last_updated)
        self.status = snapshot.status
        self.latitude = snapshot.latitude
        self.longitude = snapshot.longitude
        self.altitude = snapshot.altitude
        self.heading = snapshot.heading
        self.horizontal_speed = snapshot.horizontal_speed

        if snapshot.departure_iata:
            self.departure_iata = snapshot.departure_iata
        if snapshot.arrival_iata:
            self.arrival_iata = snapshot.arrival_iata
        if snapshot.departure_date is not None:
            self.departure_date = snapshot.departure_date
        if snapshot.arrival_date is not None:
            self.arrival_date = snapshot.arrival_date
        if snapshot.departure_time_zone_id is not None:
            self.departure_time_zone_id = snapshot.departure_time_zone_id
        if snapshot.arrival_time_zone_id is not None:
            self.arrival_time_zone_id = snapshot.arrival_time_zone_id

        self.departure_terminal = snapshot.departure_terminal
        self.departure_gate = snapshot.departure_gate
        self.arrival_terminal = snapshot.arrival_terminal
        self.arrival_gate = snapshot.arrival_gate

    def to_snapshot(self) -> FlightSnapshot:
        """Domain view of this row."""
        return FlightSnapshot(
            id=self.flight_iata,
            last_updated=ensure_utc(self.position_updated),
            status=self.status or FlightStatus.UNKNOWN.value,
            latitude=self.latitude or 0.0,
            longitude=self.longitude or 0.0,
            altitude=self.altitude or 0.0,
            heading=self.heading or 0.0,
            horizontal_speed=self.horizontal_speed or 0.0,
            departure_iata=self.departure_iata or '',
            arrival_iata=self.arrival_iata or '',
            departure_date=ensure_utc(self.departure_date),
            arrival_date=ensure_utc(self.arrival_date),
            departure_terminal=self.departure_terminal,
            departure_gate=self.departure_gate,
            arrival_terminal=self.arrival_terminal,
            arrival_gate=self.arrival_gate,
            departure_time_zone_id=self.departure_time_zone_id,
            arrival_time_zone_id=self.arrival_time_zone_id,
        )
