"""
Tracking controller - lifecycle of the one flight currently on screen.

State machine:

    idle --search--> loading --found--> tracking --tick--> tracking
                             --none/error--> error

    search() from any state cancels the tick and goes back to loading.
    load_saved() jumps straight to tracking without touching the network.
    save() persists the flight and returns to idle.

While tracking, a background thread ticks every `tick_interval` seconds
and replaces the current snapshot with its dead-reckoned position.
Ticks never touch the network or the store.

All state mutations (tick included) happen under one re-entrant lock,
which plays the role of a single task queue. Each tick run owns a
threading.Event as its cancellation token and re-checks it under the
lock before writing, so once stop() or search() returns no tick of the
previous run can land. A generation counter discards image results
that arrive for a flight that is no longer current.
"""

import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from flighttracker.config import config
from flighttracker.errors import FlightTrackerError
from flighttracker.geo import haversine_distance
from flighttracker.interpolation import InterpolationEngine
from flighttracker.models.base import utcnow
from flighttracker.models.flight_record import FlightRecord
from flighttracker.models.snapshot import FlightImages, FlightSnapshot, normalize_flight_id
from flighttracker.repository import FlightCacheRepository
from flighttracker.services.images import ImagesProvider

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = 'Flight not found'

SnapshotCallback = Callable[[Optional[FlightSnapshot]], None]
StateCallback = Callable[['TrackingState', Optional[str]], None]
ImagesCallback = Callable[[FlightImages], None]


class TrackingState(str, Enum):
    """Controller lifecycle state."""
    IDLE = 'idle'
    LOADING = 'loading'
    TRACKING = 'tracking'
    ERROR = 'error'


class TrackingController:
    """
    Owns a single tracked flight.

    Subscribers register callbacks instead of polling:
    - snapshot callbacks receive every new current snapshot (None when cleared)
    - state callbacks receive (state, error_message)
    - images callbacks receive FlightImages once they arrive

    Callbacks run on the thread that caused the change (the caller's
    thread, the tick thread or the image thread) while the controller
    lock is held; they may call back into the controller.
    """

    def __init__(
        self,
        repository: FlightCacheRepository,
        images_provider: Optional[ImagesProvider] = None,
        engine: Optional[InterpolationEngine] = None,
        tick_interval: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            repository: Cache-aside flight repository
            images_provider: Optional picture lookup; None disables images
            engine: Interpolation engine (default debounce from config)
            tick_interval: Seconds between simulation ticks
            clock: Returns the current aware UTC time
        """
        self.repository = repository
        self.images_provider = images_provider
        self.engine = engine or InterpolationEngine(config.tracking.debounce_seconds)
        self.tick_interval = (
            config.tracking.tick_interval_seconds if tick_interval is None else tick_interval
        )
        self._clock = clock or utcnow

        self._lock = threading.RLock()
        self._state = TrackingState.IDLE
        self._error_message: Optional[str] = None
        self._current: Optional[FlightSnapshot] = None
        # Snapshot as received from the repository/store; save() persists this one
        self._origin: Optional[FlightSnapshot] = None
        self._images: Optional[FlightImages] = None
        self._generation = 0

        self._tick_stop: Optional[threading.Event] = None
        self._tick_thread: Optional[threading.Thread] = None
        self._tick_count = 0

        self._snapshot_callbacks: List[SnapshotCallback] = []
        self._state_callbacks: List[StateCallback] = []
        self._images_callbacks: List[ImagesCallback] = []

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def add_snapshot_callback(self, callback: SnapshotCallback) -> None:
        """Register callback invoked whenever the current snapshot changes."""
        self._snapshot_callbacks.append(callback)

    def add_state_callback(self, callback: StateCallback) -> None:
        """Register callback invoked on every state transition."""
        self._state_callbacks.append(callback)

    def add_images_callback(self, callback: ImagesCallback) -> None:
        """Register callback invoked when flight images arrive."""
        self._images_callbacks.append(callback)

    def _notify(self, callbacks: list, *args) -> None:
        for callback in list(callbacks):
            try:
                callback(*args)
            except Exception as e:
                logger.error(f'Tracking callback error: {e}')

    # -------------------------------------------------------------------------
    # Read-only state
    # -------------------------------------------------------------------------

    @property
    def state(self) -> TrackingState:
        return self._state

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def current(self) -> Optional[FlightSnapshot]:
        return self._current

    @property
    def images(self) -> Optional[FlightImages]:
        return self._images

    @property
    def is_ticking(self) -> bool:
        with self._lock:
            return self._tick_stop is not None

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def search(self, flight_id: str) -> Optional[FlightSnapshot]:
        """
        Look a flight up and start tracking it.

        Blocks while the repository fetches. Returns the snapshot, or
        None when the flight was not found, the lookup failed (see
        error_message) or another search superseded this one.
        """
        flight_id = normalize_flight_id(flight_id)

        with self._lock:
            generation = self._supersede()
            self._set_current(None)
            self._set_state(TrackingState.LOADING)

        logger.info(f'Searching for flight {flight_id}')

        try:
            snapshot = self.repository.get_flight(flight_id)
        except FlightTrackerError as e:
            logger.error(f'Lookup for {flight_id} failed: {e}')
            with self._lock:
                if generation == self._generation:
                    self._set_state(TrackingState.ERROR, str(e) or e.__class__.__name__)
            return None

        with self._lock:
            if generation != self._generation:
                logger.debug(f'Search for {flight_id} was superseded')
                return None

            if snapshot is None:
                self._set_state(TrackingState.ERROR, NOT_FOUND_MESSAGE)
                return None

            self._begin_tracking(snapshot, generation)

        return snapshot

    def load_saved(self, record: FlightRecord) -> FlightSnapshot:
        """Resume tracking a stored flight without asking the upstream."""
        snapshot = record.to_snapshot()

        with self._lock:
            generation = self._supersede()
            logger.info(f'Loading saved flight {snapshot.id}')
            self._begin_tracking(snapshot, generation)

        return snapshot

    def save(self) -> bool:
        """
        Persist the current flight and stop tracking it.

        Returns False if there is nothing to save or the store failed;
        on failure the flight stays loaded so the save can be retried.
        """
        with self._lock:
            snapshot = self._origin

        if snapshot is None:
            logger.warning('Save requested with no current flight')
            return False

        try:
            self.repository.save_flight(snapshot)
        except FlightTrackerError as e:
            logger.error(f'Failed to save flight {snapshot.id}: {e}')
            with self._lock:
                self._cancel_tick()
                self._set_state(TrackingState.ERROR, f'Failed to save flight: {e}')
            return False

        with self._lock:
            if self._origin is snapshot:
                self._supersede()
                self._set_current(None)
                self._set_state(TrackingState.IDLE)

        return True

    def stop(self) -> None:
        """Stop the simulation tick. Safe to call any time, any number of times."""
        with self._lock:
            if self._cancel_tick():
                logger.info('Tracking stopped')

    def tick(self) -> Optional[FlightSnapshot]:
        """
        Advance the simulation once.

        The background thread calls this every tick_interval; hosts that
        run their own loop may call it directly. Does nothing unless
        tracking.
        """
        with self._lock:
            if self._state != TrackingState.TRACKING:
                return None
            return self._advance()

    # -------------------------------------------------------------------------
    # Internals (call with self._lock held)
    # -------------------------------------------------------------------------

    def _set_state(self, state: TrackingState, message: Optional[str] = None) -> None:
        if state == self._state and message == self._error_message:
            return
        self._state = state
        self._error_message = message
        logger.debug(f'Tracking state -> {state.value}' + (f' ({message})' if message else ''))
        self._notify(self._state_callbacks, state, message)

    def _set_current(self, snapshot: Optional[FlightSnapshot]) -> None:
        if snapshot is self._current:
            return
        self._current = snapshot
        if snapshot is None:
            self._origin = None
        self._notify(self._snapshot_callbacks, snapshot)

    def _supersede(self) -> int:
        """Cancel the tick and invalidate pending work of the previous flight."""
        self._cancel_tick()
        self._generation += 1
        self._images = None
        return self._generation

    def _begin_tracking(self, snapshot: FlightSnapshot, generation: int) -> None:
        self._origin = snapshot
        self._set_current(snapshot)
        self._set_state(TrackingState.TRACKING)
        self._start_tick()
        self._request_images(snapshot, generation)
        logger.info(
            f'Tracking {snapshot.id} ({snapshot.status}) at '
            f'({snapshot.latitude:.4f}, {snapshot.longitude:.4f})'
        )

    def _advance(self) -> Optional[FlightSnapshot]:
        if self._current is None:
            return None
        self._tick_count += 1
        updated = self.engine.interpolate(self._current, self._clock())
        self._set_current(updated)
        return updated

    def _start_tick(self) -> None:
        self._cancel_tick()
        stop = threading.Event()
        self._tick_stop = stop
        self._tick_thread = threading.Thread(
            target=self._run_ticks,
            args=(stop,),
            name='flighttracker-tick',
            daemon=True,
        )
        self._tick_thread.start()

    def _cancel_tick(self) -> bool:
        if self._tick_stop is None:
            return False
        self._tick_stop.set()
        self._tick_stop = None
        self._tick_thread = None
        return True

    def _run_ticks(self, stop: threading.Event) -> None:
        """Tick loop. Exits as soon as its stop event is set."""
        while not stop.wait(self.tick_interval):
            with self._lock:
                if stop.is_set():
                    break
                try:
                    self._advance()
                except Exception as e:
                    logger.error(f'Tick failed: {e}')
        logger.debug('Tick loop exited')

    def _request_images(self, snapshot: FlightSnapshot, generation: int) -> None:
        if self.images_provider is None:
            return
        threading.Thread(
            target=self._load_images,
            args=(snapshot, generation),
            name=f'flighttracker-images-{snapshot.id}',
            daemon=True,
        ).start()

    def _load_images(self, snapshot: FlightSnapshot, generation: int) -> None:
        """Runs on its own thread; failures are logged and dropped."""
        try:
            images = self.images_provider.get_images(snapshot)
        except Exception as e:
            logger.warning(f'Error loading images for {snapshot.id}: {e}')
            return

        with self._lock:
            if generation != self._generation:
                logger.debug(f'Dropping images for superseded flight {snapshot.id}')
                return
            self._images = images
            self._notify(self._images_callbacks, images)

    @property
    def distance_from_fix_km(self) -> Optional[float]:
        """How far the simulated position has moved from the last upstream fix."""
        with self._lock:
            if self._origin is None or self._current is None:
                return None
            return haversine_distance(
                self._origin.latitude, self._origin.longitude,
                self._current.latitude, self._current.longitude,
            )

    @property
    def stats(self) -> dict:
        """Get controller statistics."""
        with self._lock:
            return {
                'state': self._state.value,
                'flight_id': self._current.id if self._current else None,
                'ticking': self._tick_stop is not None,
                'tick_count': self._tick_count,
                'generation': self._generation,
                'distance_from_fix_km': self.distance_from_fix_km,
            }
