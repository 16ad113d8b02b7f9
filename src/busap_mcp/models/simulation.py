"""Pydantic models for simulation sessions and the positions they publish."""

from enum import Enum

from pydantic import BaseModel, Field

from busap_mcp.data.config import (
    MAX_RANDOM_DEVIATION,
    MAX_SPEED_MULTIPLIER,
    MAX_UPDATE_INTERVAL_MS,
    MIN_RANDOM_DEVIATION,
    MIN_SPEED_MULTIPLIER,
    MIN_UPDATE_INTERVAL_MS,
)


class SimulationStatus(str, Enum):
    """Lifecycle status of a simulation session.

    running <-> paused, then stopped or completed (terminal).
    """

    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"
    COMPLETED = "completed"

    @property
    def is_active(self) -> bool:
        return self in (SimulationStatus.RUNNING, SimulationStatus.PAUSED)


class SimulationSettings(BaseModel):
    """Parameters a simulation is started with."""

    speed_multiplier: float = Field(
        default=10.0,
        ge=MIN_SPEED_MULTIPLIER,
        le=MAX_SPEED_MULTIPLIER,
        description="Simulated seconds per real second (10 = 1 simulated hour per 6 minutes)",
    )
    update_interval_ms: int = Field(
        default=2000,
        ge=MIN_UPDATE_INTERVAL_MS,
        le=MAX_UPDATE_INTERVAL_MS,
        description="Real milliseconds between position updates",
    )
    random_deviation: float = Field(
        default=50.0,
        ge=MIN_RANDOM_DEVIATION,
        le=MAX_RANDOM_DEVIATION,
        description="Maximum positional jitter in meters",
    )


class PositionUpdate(BaseModel):
    """Position published on every tick."""

    session_id: str
    trip_id: str
    vehicle_id: str
    latitude: float
    longitude: float
    heading: float = Field(description="Degrees clockwise from north")
    speed: float = Field(description="km/h")
    segment_index: int
    segment_progress: float = Field(description="0.0 to 1.0 within the current segment")
    elapsed_ms: float = Field(description="Simulated milliseconds since start")
    status: SimulationStatus
    timestamp: str = Field(description="ISO timestamp when the update was computed")
    accuracy: float | None = Field(default=None, description="Reported GPS accuracy in meters")
    simulated: bool = True


class SimulationSnapshot(BaseModel):
    """Detached copy of a session's observable state."""

    session_id: str
    trip_id: str
    vehicle_id: str
    route_name: str | None = None
    status: SimulationStatus
    settings: SimulationSettings
    elapsed_ms: float
    total_planned_duration_ms: float
    fraction_complete: float
    segment_index: int
    segment_progress: float
    latitude: float
    longitude: float
    heading: float
    speed: float = Field(description="km/h")
    point_count: int = Field(description="Number of points on the simulated path")
    total_distance_meters: float
    started_at: str
    finished_at: str | None = None
    failure_reason: str | None = None


class ListSimulationsResponse(BaseModel):
    simulations: list[SimulationSnapshot]
    count: int = Field(description="Number of simulations returned")
    active_count: int = Field(default=0, description="Running or paused simulations")


class VehiclePositionResponse(BaseModel):
    vehicle_id: str
    position: PositionUpdate | None = Field(
        default=None, description="Latest position, null if none within the cache TTL"
    )
