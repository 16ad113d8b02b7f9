"""MCP tools for controlling live trip simulations."""

from mcp.server.fastmcp import Context

from busap_mcp.app import get_app_context, mcp
from busap_mcp.models.simulation import (
    ListSimulationsResponse,
    SimulationSettings,
    SimulationSnapshot,
    SimulationStatus,
    VehiclePositionResponse,
)
from busap_mcp.models.transit import ListAvailableTripsResponse


@mcp.tool()
async def start_simulation(
    trip_id: str,
    ctx: Context,
    speed_multiplier: float | None = None,
    update_interval_ms: int | None = None,
    random_deviation: float | None = None,
    seed: int | None = None,
) -> SimulationSnapshot:
    """Start a live GPS simulation of a scheduled trip.

    The assigned vehicle moves along the trip's stops (or road shape when the
    feed has one) at a pace proportional to distance, so the whole route takes
    the trip's scheduled duration in simulated time.

    Args:
        trip_id: Trip to simulate. The trip must have a vehicle assigned.
        speed_multiplier: Simulated seconds per real second (1-100, default 10).
        update_interval_ms: Real milliseconds between position updates
                            (500-30000, default 2000).
        random_deviation: Maximum GPS jitter in meters (0-500, default 50).
        seed: Optional seed to make the jitter reproducible.

    Returns:
        SimulationSnapshot of the running session, including its session_id.
    """
    app = get_app_context(ctx)
    config = app.config
    settings = SimulationSettings(
        speed_multiplier=(
            config.default_speed_multiplier if speed_multiplier is None else speed_multiplier
        ),
        update_interval_ms=(
            config.default_update_interval_ms
            if update_interval_ms is None
            else update_interval_ms
        ),
        random_deviation=(
            config.default_random_deviation if random_deviation is None else random_deviation
        ),
    )
    return await app.registry.start(trip_id, settings, seed=seed)


@mcp.tool()
async def pause_simulation(session_id: str, ctx: Context) -> SimulationSnapshot:
    """Pause a running simulation. Simulated time stops until resumed.

    Args:
        session_id: ID returned by start_simulation.
    """
    return await get_app_context(ctx).registry.pause(session_id)


@mcp.tool()
async def resume_simulation(session_id: str, ctx: Context) -> SimulationSnapshot:
    """Resume a paused simulation from where it stopped.

    Args:
        session_id: ID returned by start_simulation.
    """
    return await get_app_context(ctx).registry.resume(session_id)


@mcp.tool()
async def stop_simulation(session_id: str, ctx: Context) -> SimulationSnapshot:
    """Stop a running or paused simulation and free its trip.

    Args:
        session_id: ID returned by start_simulation.
    """
    return await get_app_context(ctx).registry.stop(session_id)


@mcp.tool()
async def get_simulation(session_id: str, ctx: Context) -> SimulationSnapshot:
    """Get the current state of a simulation.

    Args:
        session_id: ID returned by start_simulation.

    Returns:
        SimulationSnapshot with status, position, progress and settings.
    """
    return get_app_context(ctx).registry.get(session_id)


@mcp.tool()
async def list_simulations(
    ctx: Context,
    status: SimulationStatus | None = None,
    purge_finished: bool = False,
) -> ListSimulationsResponse:
    """List simulation sessions, oldest first.

    Args:
        status: Only return sessions with this status
                (running, paused, stopped or completed).
        purge_finished: Forget stopped and completed sessions before listing.

    Returns:
        ListSimulationsResponse with session snapshots.
    """
    registry = get_app_context(ctx).registry
    if purge_finished:
        registry.purge()

    simulations = registry.list_sessions(status)
    return ListSimulationsResponse(
        simulations=simulations,
        count=len(simulations),
        active_count=registry.active_count,
    )


@mcp.tool()
async def list_simulation_trips(ctx: Context, limit: int = 20) -> ListAvailableTripsResponse:
    """List trips that can be simulated.

    Returns scheduled and in-progress trips that have a vehicle assigned,
    ordered by first departure.

    Args:
        limit: Maximum number of trips to return (1-100, default: 20).
    """
    # Validate and clamp limit to 1-100
    limit = max(1, min(100, limit))

    trips = await get_app_context(ctx).registry.list_available_trips(limit)
    return ListAvailableTripsResponse(trips=trips, count=len(trips))


@mcp.tool()
async def get_vehicle_position(vehicle_id: str, ctx: Context) -> VehiclePositionResponse:
    """Get the latest published position of a vehicle.

    Positions expire from the cache after BUSAP_POSITION_TTL seconds
    (default 60) without an update.

    Args:
        vehicle_id: Vehicle to look up.
    """
    position = get_app_context(ctx).positions.latest(vehicle_id)
    return VehiclePositionResponse(vehicle_id=vehicle_id, position=position)
