"""
Tests for dead-reckoning interpolation.
"""

from dataclasses import replace
from datetime import timedelta

import pytest

from conftest import T0, make_snapshot
from flighttracker.geo import haversine_distance
from flighttracker.interpolation import KMH_TO_MS, InterpolationEngine, interpolate


@pytest.fixture
def engine():
    return InterpolationEngine()


class TestDebounce:
    """Snapshots younger than five seconds are returned untouched."""

    def test_fresh_snapshot_returned_as_is(self, engine):
        snapshot = make_snapshot()
        result = engine.interpolate(snapshot, T0 + timedelta(seconds=4.9))
        assert result is snapshot

    def test_same_instant(self, engine):
        snapshot = make_snapshot()
        assert engine.interpolate(snapshot, T0) is snapshot

    def test_five_seconds_moves(self, engine):
        snapshot = make_snapshot()
        now = T0 + timedelta(seconds=5)
        result = engine.interpolate(snapshot, now)
        assert result is not snapshot
        assert result.last_updated == now
        assert result.longitude != snapshot.longitude

    def test_custom_debounce_window(self):
        engine = InterpolationEngine(debounce_seconds=30)
        snapshot = make_snapshot()
        assert engine.interpolate(snapshot, T0 + timedelta(seconds=20)) is snapshot
        assert engine.interpolate(snapshot, T0 + timedelta(seconds=30)) is not snapshot


class TestProjection:
    """Position is advanced along the heading at the reported speed."""

    def test_one_hour_east_from_london(self, engine):
        """900 km/h due east for an hour covers about 900 km."""
        snapshot = make_snapshot(latitude=51.5, longitude=-0.12, heading=90, horizontal_speed=900)
        now = T0 + timedelta(hours=1)

        result = engine.interpolate(snapshot, now)

        expected_km = 900 * KMH_TO_MS * 3600 / 1000
        travelled = haversine_distance(51.5, -0.12, result.latitude, result.longitude)
        assert travelled == pytest.approx(expected_km, abs=0.01)
        assert expected_km == pytest.approx(900, abs=0.01)

        # Great circle heading east drifts towards the equator
        assert 12.0 < result.longitude < 13.5
        assert 50.5 < result.latitude < 51.5
        assert result.last_updated == now

    def test_zero_speed_keeps_position(self, engine):
        snapshot = make_snapshot(horizontal_speed=0)
        now = T0 + timedelta(minutes=10)

        result = engine.interpolate(snapshot, now)

        assert result.latitude == pytest.approx(snapshot.latitude, abs=1e-9)
        assert result.longitude == pytest.approx(snapshot.longitude, abs=1e-9)
        assert result.last_updated == now

    def test_negative_speed_keeps_position(self, engine):
        snapshot = make_snapshot(horizontal_speed=-50)
        result = engine.interpolate(snapshot, T0 + timedelta(minutes=10))
        assert result.latitude == pytest.approx(snapshot.latitude, abs=1e-9)
        assert result.longitude == pytest.approx(snapshot.longitude, abs=1e-9)

    def test_sentinel_position_still_extrapolated(self, engine):
        """(0, 0) is not special-cased."""
        snapshot = make_snapshot(latitude=0, longitude=0, heading=0, horizontal_speed=900)
        result = engine.interpolate(snapshot, T0 + timedelta(minutes=1))
        assert result.latitude > 0
        assert result.longitude == pytest.approx(0, abs=1e-9)
        assert result.has_position

    def test_other_fields_pass_through(self, engine):
        snapshot = make_snapshot()
        result = engine.interpolate(snapshot, T0 + timedelta(minutes=3))

        moved_back = replace(
            result,
            latitude=snapshot.latitude,
            longitude=snapshot.longitude,
            last_updated=snapshot.last_updated,
        )
        assert moved_back == snapshot

    def test_repeated_interpolation_accumulates(self, engine):
        """Two 30-minute steps land where one 60-minute step does."""
        snapshot = make_snapshot(heading=90, latitude=0, longitude=10)

        halfway = engine.interpolate(snapshot, T0 + timedelta(minutes=30))
        stepped = engine.interpolate(halfway, T0 + timedelta(minutes=60))
        direct = engine.interpolate(snapshot, T0 + timedelta(minutes=60))

        assert stepped.latitude == pytest.approx(direct.latitude, abs=1e-9)
        assert stepped.longitude == pytest.approx(direct.longitude, abs=1e-9)


class TestModuleFunction:
    """Tests for the module-level interpolate shortcut."""

    def test_uses_default_debounce(self):
        snapshot = make_snapshot()
        assert interpolate(snapshot, T0 + timedelta(seconds=1)) is snapshot
        assert interpolate(snapshot, T0 + timedelta(seconds=60)).last_updated == T0 + timedelta(seconds=60)
