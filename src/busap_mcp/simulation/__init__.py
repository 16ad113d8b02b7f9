"""Live GPS trip simulation along route geometry."""

from busap_mcp.simulation.clock import SimulationClock
from busap_mcp.simulation.driver import SimulationDriver
from busap_mcp.simulation.geo import haversine_distance, initial_bearing
from busap_mcp.simulation.interpolator import InterpolatedPosition, compute_position
from busap_mcp.simulation.publisher import (
    PositionCacheSink,
    PositionPublisher,
    PositionSink,
    SqlitePositionSink,
)
from busap_mcp.simulation.registry import SimulationRegistry, TripSource
from busap_mcp.simulation.route_path import GeoPoint, RoutePath
from busap_mcp.simulation.session import SimulationSession

__all__ = [
    # Geometry
    "GeoPoint",
    "RoutePath",
    "haversine_distance",
    "initial_bearing",
    # Engine
    "SimulationClock",
    "compute_position",
    "InterpolatedPosition",
    "SimulationSession",
    "SimulationRegistry",
    "SimulationDriver",
    "TripSource",
    # Publishing
    "PositionSink",
    "PositionPublisher",
    "PositionCacheSink",
    "SqlitePositionSink",
]
