"""
Tests for the tracking controller state machine.
"""

import threading
from unittest.mock import patch

import pytest

from conftest import T0, FakeSource, make_snapshot
from flighttracker.errors import ImageFetchFailure, PersistenceFailure, SourceUnavailable
from flighttracker.interpolation import KMH_TO_MS
from flighttracker.models.snapshot import FlightImages
from flighttracker.repository import FlightCacheRepository
from flighttracker.tracking import NOT_FOUND_MESSAGE, TrackingController, TrackingState


class FakeImagesProvider:
    """ImagesProvider that optionally blocks until released."""

    def __init__(self, images=None, error=None, release=None):
        self.images = images or FlightImages(
            airport_url='https://images.example/jfk.jpg',
            aircraft_url='https://images.example/ba100.jpg',
        )
        self.error = error
        self.release = release
        self.calls = []

    def get_images(self, snapshot):
        self.calls.append(snapshot.id)
        if self.release is not None:
            self.release.wait(5)
        if self.error is not None:
            raise self.error
        return self.images


@pytest.fixture
def source():
    return FakeSource([make_snapshot()])


@pytest.fixture
def repository(store, source, clock):
    return FlightCacheRepository(store, source, cache_validity_seconds=300, clock=clock)


@pytest.fixture
def controller(repository, clock):
    # Long interval: ticks are driven by hand through tick()
    tracker = TrackingController(repository, tick_interval=3600, clock=clock)
    yield tracker
    tracker.stop()


def join_threads(prefix):
    for thread in threading.enumerate():
        if thread.name.startswith(prefix):
            thread.join(timeout=5)


class TestSearch:
    """Tests for search()."""

    def test_found_starts_tracking(self, controller):
        states = []
        controller.add_state_callback(lambda state, message: states.append(state))

        snapshot = controller.search('BA100')

        assert snapshot == make_snapshot()
        assert controller.state == TrackingState.TRACKING
        assert controller.current == snapshot
        assert controller.error_message is None
        assert controller.is_ticking
        assert states == [TrackingState.LOADING, TrackingState.TRACKING]

    def test_flight_id_normalized(self, controller, source):
        controller.search('  ba 100 ')
        assert source.calls == ['BA100']

    def test_not_found(self, controller, source):
        source.results = [None]

        assert controller.search('XX999') is None
        assert controller.state == TrackingState.ERROR
        assert controller.error_message == NOT_FOUND_MESSAGE
        assert controller.current is None
        assert not controller.is_ticking

    def test_source_failure(self, controller, source):
        source.results = [SourceUnavailable('Invalid API key (unknown_api_key)')]

        assert controller.search('BA100') is None
        assert controller.state == TrackingState.ERROR
        assert 'Invalid API key' in controller.error_message

    def test_store_failure(self, controller, repository):
        with patch.object(repository.store, 'get', side_effect=PersistenceFailure('locked')):
            assert controller.search('BA100') is None
        assert controller.state == TrackingState.ERROR

    def test_new_search_clears_current(self, controller, source):
        controller.search('BA100')
        updates = []
        controller.add_snapshot_callback(updates.append)
        source.results = [make_snapshot('LH400')]

        controller.search('LH400')

        assert updates[0] is None
        assert updates[-1].id == 'LH400'

    def test_new_search_cancels_previous_tick(self, controller, source):
        controller.search('BA100')
        old_stop = controller._tick_stop
        source.results = [make_snapshot('LH400')]

        controller.search('LH400')

        assert old_stop.is_set()
        assert controller._tick_stop is not old_stop
        assert controller.current.id == 'LH400'

    def test_search_after_error_recovers(self, controller, source):
        source.results = [None]
        controller.search('BA100')
        source.results = [make_snapshot()]

        controller.search('BA100')

        assert controller.state == TrackingState.TRACKING
        assert controller.error_message is None


class TestTick:
    """Tests for the simulation tick."""

    def test_tick_within_debounce_keeps_snapshot(self, controller, clock):
        snapshot = controller.search('BA100')
        clock.advance(3)

        assert controller.tick() is snapshot
        assert controller.current is snapshot

    def test_tick_moves_flight(self, controller, clock, source):
        controller.search('BA100')
        clock.advance(60)

        updated = controller.tick()

        assert updated.longitude < -0.12  # heading west
        assert updated.last_updated == clock()
        assert controller.current is updated
        assert source.calls == ['BA100']

    def test_tick_never_touches_store(self, controller, clock, store):
        controller.search('BA100')
        clock.advance(120)
        controller.tick()

        assert store.get('BA100').latitude == 51.5
        assert store.get('BA100').longitude == -0.12

    def test_tick_ignored_unless_tracking(self, controller, source):
        assert controller.tick() is None
        source.results = [None]
        controller.search('XX1')
        assert controller.tick() is None

    def test_background_ticks(self, repository, clock):
        moved = threading.Event()
        controller = TrackingController(repository, tick_interval=0.01, clock=clock)

        def on_snapshot(snapshot):
            if snapshot is not None and snapshot.last_updated != T0:
                moved.set()

        controller.add_snapshot_callback(on_snapshot)
        try:
            controller.search('BA100')
            clock.advance(10)
            assert moved.wait(5)
            assert controller.current.longitude != -0.12
        finally:
            controller.stop()

    def test_stop_is_idempotent(self, controller):
        controller.search('BA100')

        controller.stop()
        controller.stop()

        assert not controller.is_ticking
        assert controller.state == TrackingState.TRACKING

    def test_stop_when_idle(self, controller):
        controller.stop()
        assert controller.state == TrackingState.IDLE


class TestLoadSaved:
    """Tests for load_saved()."""

    def test_load_saved_skips_upstream(self, controller, repository, source):
        repository.save_flight(make_snapshot())
        record = repository.list_saved()[0]

        snapshot = controller.load_saved(record)

        assert snapshot.id == 'BA100'
        assert source.calls == []
        assert controller.state == TrackingState.TRACKING
        assert controller.is_ticking

    def test_load_saved_extrapolates_from_stored_position(self, controller, repository, clock):
        repository.save_flight(make_snapshot())
        record = repository.list_saved()[0]
        clock.advance(1800)

        controller.load_saved(record)
        updated = controller.tick()

        assert updated.longitude < -0.12


class TestSave:
    """Tests for save()."""

    def test_save_goes_idle(self, controller, repository):
        controller.search('BA100')

        assert controller.save() is True
        assert controller.state == TrackingState.IDLE
        assert controller.current is None
        assert not controller.is_ticking
        assert len(repository.list_saved()) == 1

    def test_save_nothing(self, controller):
        assert controller.save() is False
        assert controller.state == TrackingState.IDLE

    def test_save_persists_received_snapshot(self, repository, store, clock):
        controller = TrackingController(repository, tick_interval=3600, clock=clock)
        controller.search('BA100')
        store.delete('BA100')
        clock.advance(600)
        controller.tick()

        controller.save()

        record = store.get('BA100')
        assert record.latitude == 51.5
        assert record.longitude == -0.12
        assert record.position_updated == T0
        assert record.last_updated == clock()

    def test_save_failure_keeps_flight(self, controller, repository):
        controller.search('BA100')

        with patch.object(repository, 'save_flight', side_effect=PersistenceFailure('disk full')):
            assert controller.save() is False

        assert controller.state == TrackingState.ERROR
        assert controller.error_message.startswith('Failed to save flight')
        assert controller.current is not None
        assert not controller.is_ticking

        assert controller.save() is True
        assert controller.state == TrackingState.IDLE


class TestImages:
    """Tests for background image loading."""

    def test_images_delivered(self, repository, clock):
        provider = FakeImagesProvider()
        controller = TrackingController(repository, provider, tick_interval=3600, clock=clock)
        received = threading.Event()
        controller.add_images_callback(lambda images: received.set())

        try:
            controller.search('BA100')
            assert received.wait(5)
            assert controller.images == provider.images
            assert provider.calls == ['BA100']
        finally:
            controller.stop()

    def test_image_failure_leaves_tracking(self, repository, clock):
        provider = FakeImagesProvider(error=ImageFetchFailure('rate limited'))
        controller = TrackingController(repository, provider, tick_interval=3600, clock=clock)

        try:
            controller.search('BA100')
            join_threads('flighttracker-images-')
            assert controller.state == TrackingState.TRACKING
            assert controller.images is None
        finally:
            controller.stop()

    def test_superseded_images_dropped(self, repository, source, clock):
        release = threading.Event()
        provider = FakeImagesProvider(release=release)
        controller = TrackingController(repository, provider, tick_interval=3600, clock=clock)
        delivered = []
        controller.add_images_callback(delivered.append)

        try:
            controller.search('BA100')
            source.results = [None]
            controller.search('XX1')
            release.set()
            join_threads('flighttracker-images-BA100')

            assert delivered == []
            assert controller.images is None
        finally:
            controller.stop()


class TestCallbacks:
    """Tests for subscriber callbacks."""

    def test_failing_callback_does_not_break_tracking(self, controller, clock):
        def broken(snapshot):
            raise ValueError('subscriber bug')

        controller.add_snapshot_callback(broken)
        controller.search('BA100')
        clock.advance(30)

        assert controller.tick() is not None
        assert controller.state == TrackingState.TRACKING

    def test_stats(self, controller, clock):
        controller.search('BA100')
        clock.advance(30)
        controller.tick()

        stats = controller.stats
        assert stats['state'] == 'tracking'
        assert stats['flight_id'] == 'BA100'
        assert stats['ticking'] is True
        assert stats['tick_count'] == 1
        assert stats['distance_from_fix_km'] == pytest.approx(900 * KMH_TO_MS * 30 / 1000, abs=1e-3)


class TestDistanceFromFix:
    """Tests for the simulated distance since the last upstream fix."""

    def test_none_without_flight(self, controller):
        assert controller.distance_from_fix_km is None

    def test_zero_before_first_move(self, controller):
        controller.search('BA100')
        assert controller.distance_from_fix_km == 0.0

    def test_grows_with_elapsed_time(self, controller, clock):
        controller.search('BA100')
        clock.advance(600)
        controller.tick()

        # 900 km/h for ten minutes
        assert controller.distance_from_fix_km == pytest.approx(150, abs=0.01)

    def test_cleared_after_save(self, controller, clock):
        controller.search('BA100')
        clock.advance(60)
        controller.tick()
        controller.save()

        assert controller.distance_from_fix_km is None
