"""One simulated trip: route geometry, clock and lifecycle state."""

import asyncio
import logging
import random
from datetime import UTC, datetime

from busap_mcp.errors import InvalidStateError
from busap_mcp.models.simulation import (
    PositionUpdate,
    SimulationSettings,
    SimulationSnapshot,
    SimulationStatus,
)
from busap_mcp.models.transit import TripRoute
from busap_mcp.simulation.clock import SimulationClock
from busap_mcp.simulation.interpolator import InterpolatedPosition, compute_position
from busap_mcp.simulation.route_path import RoutePath

logger = logging.getLogger(__name__)

# Reported GPS accuracy range in meters
MIN_ACCURACY_METERS = 5.0
ACCURACY_SPREAD_METERS = 10.0


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class SimulationSession:
    """State machine for a single simulation.

    Transitions: running <-> paused, running|paused -> stopped,
    running -> completed. Terminal sessions never change again.

    Callers that share a session across tasks must hold ``lock`` around
    lifecycle calls and ticks; the registry does this.
    """

    def __init__(
        self,
        session_id: str,
        trip: TripRoute,
        path: RoutePath,
        settings: SimulationSettings,
        total_planned_duration: float,
        clock: SimulationClock,
        seed: int | None = None,
    ) -> None:
        if total_planned_duration <= 0:
            raise ValueError("total_planned_duration must be positive")

        self.session_id = session_id
        self.trip_id = trip.trip_id
        self.vehicle_id = trip.vehicle_id
        self.route_name = trip.route_name
        self.path = path
        self.settings = settings
        self.total_planned_duration = total_planned_duration
        self.lock = asyncio.Lock()

        self._clock = clock
        self._rng = random.Random(seed)
        self._status = SimulationStatus.RUNNING
        self._elapsed = 0.0
        self._position: InterpolatedPosition = compute_position(path, 0.0, total_planned_duration)
        self.started_at = _now_iso()
        self.finished_at: str | None = None
        self.failure_reason: str | None = None

    @property
    def status(self) -> SimulationStatus:
        return self._status

    @property
    def elapsed(self) -> float:
        """Simulated seconds since start."""
        return self._elapsed

    @property
    def position(self) -> InterpolatedPosition:
        return self._position

    @property
    def is_terminal(self) -> bool:
        return not self._status.is_active

    def tick(self) -> PositionUpdate:
        """Advance simulated time and compute the new position.

        Raises:
            InvalidStateError: If the session is not running.
        """
        if self._status is not SimulationStatus.RUNNING:
            raise InvalidStateError(
                f"Simulation {self.session_id} is {self._status.value}, cannot tick"
            )

        try:
            self._elapsed += self._clock.advance()
            position = compute_position(
                self.path,
                self._elapsed,
                self.total_planned_duration,
                random_deviation=self.settings.random_deviation,
                rng=self._rng,
            )
        except Exception as e:
            self._finish(SimulationStatus.STOPPED, failure_reason=f"Tick failed: {e}")
            raise

        self._position = position
        if position.is_complete:
            self._finish(SimulationStatus.COMPLETED)
            logger.info(f"Simulation {self.session_id} completed")
        else:
            logger.debug(
                f"Simulation {self.session_id} at segment {position.segment_index} "
                f"({position.fraction_complete:.1%})"
            )
        return self.current_update()

    def pause(self) -> None:
        if self._status is not SimulationStatus.RUNNING:
            raise InvalidStateError(
                f"Cannot pause simulation {self.session_id}: status is {self._status.value}"
            )
        self._clock.pause()
        self._status = SimulationStatus.PAUSED
        logger.info(f"Simulation {self.session_id} paused")

    def resume(self) -> None:
        if self._status is not SimulationStatus.PAUSED:
            raise InvalidStateError(
                f"Cannot resume simulation {self.session_id}: status is {self._status.value}"
            )
        self._clock.resume()
        self._status = SimulationStatus.RUNNING
        logger.info(f"Simulation {self.session_id} resumed")

    def stop(self) -> None:
        if not self._status.is_active:
            raise InvalidStateError(
                f"Cannot stop simulation {self.session_id}: status is {self._status.value}"
            )
        self._finish(SimulationStatus.STOPPED)
        logger.info(f"Simulation {self.session_id} stopped")

    def _finish(self, status: SimulationStatus, failure_reason: str | None = None) -> None:
        self._status = status
        self.finished_at = _now_iso()
        if failure_reason is not None:
            self.failure_reason = failure_reason

    def current_update(self) -> PositionUpdate:
        """Build the publishable position for the current state."""
        pos = self._position
        return PositionUpdate(
            session_id=self.session_id,
            trip_id=self.trip_id,
            vehicle_id=self.vehicle_id,
            latitude=pos.latitude,
            longitude=pos.longitude,
            heading=pos.heading,
            speed=0.0 if self._status is SimulationStatus.COMPLETED else pos.speed_kmh,
            segment_index=pos.segment_index,
            segment_progress=pos.segment_progress,
            elapsed_ms=self._elapsed * 1000,
            status=self._status,
            timestamp=_now_iso(),
            accuracy=MIN_ACCURACY_METERS + self._rng.random() * ACCURACY_SPREAD_METERS,
        )

    def snapshot(self) -> SimulationSnapshot:
        """Detached copy of the observable state."""
        pos = self._position
        return SimulationSnapshot(
            session_id=self.session_id,
            trip_id=self.trip_id,
            vehicle_id=self.vehicle_id,
            route_name=self.route_name,
            status=self._status,
            settings=self.settings.model_copy(),
            elapsed_ms=self._elapsed * 1000,
            total_planned_duration_ms=self.total_planned_duration * 1000,
            fraction_complete=pos.fraction_complete,
            segment_index=pos.segment_index,
            segment_progress=pos.segment_progress,
            latitude=pos.latitude,
            longitude=pos.longitude,
            heading=pos.heading,
            speed=0.0 if self._status is SimulationStatus.COMPLETED else pos.speed_kmh,
            point_count=len(self.path.points),
            total_distance_meters=self.path.total_distance,
            started_at=self.started_at,
            finished_at=self.finished_at,
            failure_reason=self.failure_reason,
        )
