"""Registry of simulation sessions.

The registry is an ordinary object created by the server lifespan and passed
to whatever needs it. It owns every session, enforces at most one active
session per trip, and serializes lifecycle calls and ticks per session.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from typing import Protocol

from busap_mcp.errors import ConflictError, InvalidRouteError, NotFoundError
from busap_mcp.models.simulation import (
    PositionUpdate,
    SimulationSettings,
    SimulationSnapshot,
    SimulationStatus,
)
from busap_mcp.models.transit import AvailableTrip, TripRoute
from busap_mcp.services.trip_service import TRIP_STATUS_COMPLETED, TRIP_STATUS_IN_PROGRESS
from busap_mcp.simulation.clock import SimulationClock
from busap_mcp.simulation.publisher import PositionPublisher
from busap_mcp.simulation.route_path import RoutePath
from busap_mcp.simulation.session import SimulationSession

logger = logging.getLogger(__name__)


class TripSource(Protocol):
    async def get_trip_route(self, trip_id: str) -> TripRoute: ...

    async def list_available_trips(self, limit: int = 20) -> list[AvailableTrip]: ...

    async def set_trip_status(self, trip_id: str, status: str) -> None: ...


ClockFactory = Callable[[float], SimulationClock]
StartListener = Callable[[SimulationSession], None]


def _new_session_id() -> str:
    return f"sim_{uuid.uuid4().hex[:12]}"


class SimulationRegistry:
    """Creates, looks up and drives simulation sessions."""

    def __init__(
        self,
        trips: TripSource,
        publisher: PositionPublisher,
        clock_factory: ClockFactory = SimulationClock,
        session_id_factory: Callable[[], str] = _new_session_id,
        max_segment_meters: float | None = None,
    ) -> None:
        self._trips = trips
        self._publisher = publisher
        self._clock_factory = clock_factory
        self._session_id_factory = session_id_factory
        self.max_segment_meters = max_segment_meters
        self._sessions: dict[str, SimulationSession] = {}
        self._active_by_trip: dict[str, str] = {}
        self._start_lock = asyncio.Lock()
        self._start_listeners: list[StartListener] = []

    def add_start_listener(self, listener: StartListener) -> None:
        """Register a callback invoked with every newly started session."""
        self._start_listeners.append(listener)

    async def start(
        self,
        trip_id: str,
        settings: SimulationSettings | None = None,
        seed: int | None = None,
    ) -> SimulationSnapshot:
        """Start simulating a trip.

        Args:
            trip_id: Trip to simulate.
            settings: Speed, update interval and jitter; defaults when omitted.
            seed: Optional seed for the positional jitter.

        Returns:
            Snapshot of the new running session.

        Raises:
            ConflictError: If the trip already has a running or paused session.
            NotFoundError: If the trip is unknown or has no vehicle.
            InvalidRouteError: If the trip has fewer than 2 stops with coordinates
                or no positive scheduled duration.
        """
        settings = settings or SimulationSettings()

        async with self._start_lock:
            existing = self._active_by_trip.get(trip_id)
            if existing is not None:
                raise ConflictError(
                    f"Trip {trip_id} already has an active simulation ({existing})"
                )

            trip = await self._trips.get_trip_route(trip_id)
            path = RoutePath.from_stops(trip.stops, trip.shape)
            # Road shapes are used as-is
            if self.max_segment_meters and len(trip.shape) < 2:
                path = path.densify(self.max_segment_meters)
            if not trip.planned_duration_seconds:
                raise InvalidRouteError(f"Trip {trip_id} has no positive scheduled duration")

            session = SimulationSession(
                session_id=self._session_id_factory(),
                trip=trip,
                path=path,
                settings=settings,
                total_planned_duration=trip.planned_duration_seconds,
                clock=self._clock_factory(settings.speed_multiplier),
                seed=seed,
            )
            self._sessions[session.session_id] = session
            self._active_by_trip[trip_id] = session.session_id

        logger.info(
            f"Simulation {session.session_id} started for trip {trip_id} "
            f"({len(path.points)} points, {path.total_distance:.0f} m, "
            f"x{settings.speed_multiplier:g})"
        )

        await self._update_trip_status(trip_id, TRIP_STATUS_IN_PROGRESS)
        self._publisher.publish_nowait(session.current_update())

        for listener in self._start_listeners:
            listener(session)

        return session.snapshot()

    async def tick(self, session_id: str) -> PositionUpdate | None:
        """Advance one running session and publish its position.

        Returns None when the session is not running or the tick failed. A
        failed tick leaves the session stopped with a failure reason.

        Raises:
            NotFoundError: If the session id is unknown.
        """
        session = self._get(session_id)

        async with session.lock:
            if session.status is not SimulationStatus.RUNNING:
                return None
            try:
                update = session.tick()
            except Exception:
                logger.exception(f"Simulation {session_id} tick failed, stopping")
                self._release_trip(session)
                return None

        self._publisher.publish_nowait(update)

        if session.status is SimulationStatus.COMPLETED:
            self._release_trip(session)
            await self._update_trip_status(session.trip_id, TRIP_STATUS_COMPLETED)

        return update

    async def pause(self, session_id: str) -> SimulationSnapshot:
        """Pause a running session.

        Raises:
            NotFoundError: If the session id is unknown.
            InvalidStateError: If the session is not running.
        """
        session = self._get(session_id)
        async with session.lock:
            session.pause()
            return session.snapshot()

    async def resume(self, session_id: str) -> SimulationSnapshot:
        """Resume a paused session.

        Raises:
            NotFoundError: If the session id is unknown.
            InvalidStateError: If the session is not paused.
        """
        session = self._get(session_id)
        async with session.lock:
            session.resume()
            return session.snapshot()

    async def stop(self, session_id: str) -> SimulationSnapshot:
        """Stop a running or paused session, freeing its trip.

        Raises:
            NotFoundError: If the session id is unknown.
            InvalidStateError: If the session already finished.
        """
        session = self._get(session_id)
        async with session.lock:
            session.stop()
            self._release_trip(session)
            snapshot = session.snapshot()
        self._publisher.publish_nowait(session.current_update())
        return snapshot

    def get(self, session_id: str) -> SimulationSnapshot:
        """Raises NotFoundError if the session id is unknown."""
        return self._get(session_id).snapshot()

    def get_session(self, session_id: str) -> SimulationSession:
        """Live session object, for the driver."""
        return self._get(session_id)

    def list_sessions(self, status: SimulationStatus | None = None) -> list[SimulationSnapshot]:
        """Snapshots of all sessions, oldest first, optionally filtered by status."""
        return [
            session.snapshot()
            for session in self._sessions.values()
            if status is None or session.status is status
        ]

    def active_session_for_trip(self, trip_id: str) -> str | None:
        return self._active_by_trip.get(trip_id)

    @property
    def active_count(self) -> int:
        return len(self._active_by_trip)

    async def list_available_trips(self, limit: int = 20) -> list[AvailableTrip]:
        return await self._trips.list_available_trips(limit)

    def purge(self) -> int:
        """Remove finished sessions. Returns how many were removed."""
        finished = [sid for sid, s in self._sessions.items() if s.is_terminal]
        for sid in finished:
            del self._sessions[sid]
        if finished:
            logger.info(f"Purged {len(finished)} finished simulations")
        return len(finished)

    async def clear(self) -> None:
        """Stop every active session and forget all sessions."""
        for session in list(self._sessions.values()):
            async with session.lock:
                if not session.is_terminal:
                    session.stop()
        self._sessions.clear()
        self._active_by_trip.clear()

    def _get(self, session_id: str) -> SimulationSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Simulation not found: {session_id}")
        return session

    def _release_trip(self, session: SimulationSession) -> None:
        if self._active_by_trip.get(session.trip_id) == session.session_id:
            del self._active_by_trip[session.trip_id]

    async def _update_trip_status(self, trip_id: str, status: str) -> None:
        """Record the trip status in the feed database; failures only logged."""
        try:
            await self._trips.set_trip_status(trip_id, status)
        except Exception as e:
            logger.warning(f"Failed to set trip {trip_id} status to {status}: {e}")
