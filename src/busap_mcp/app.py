"""MCP application instance.

This module exists to avoid circular import issues when running with `python -m`.
All tool modules should import `mcp` from here, not from server.py.

The lifespan builds the simulation engine once per server run; tools reach it
through the request context.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from mcp.server.fastmcp import Context, FastMCP

from busap_mcp.data.config import BusapConfig, get_config
from busap_mcp.services.calendar_service import CalendarService
from busap_mcp.services.trip_service import SqliteTripSource
from busap_mcp.simulation.driver import SimulationDriver
from busap_mcp.simulation.publisher import (
    PositionCacheSink,
    PositionPublisher,
    PositionSink,
    SqlitePositionSink,
)
from busap_mcp.simulation.registry import SimulationRegistry

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything the tools share for the lifetime of the server."""

    config: BusapConfig
    registry: SimulationRegistry
    driver: SimulationDriver
    publisher: PositionPublisher
    positions: PositionCacheSink
    calendars: CalendarService


def build_app_context(config: BusapConfig | None = None) -> AppContext:
    """Wire the simulation engine and calendar store from configuration."""
    config = config or get_config()

    positions = PositionCacheSink(ttl=config.position_ttl_seconds)
    sinks: list[PositionSink] = [positions]
    if config.persist_positions:
        sinks.append(SqlitePositionSink(config.db_path))

    publisher = PositionPublisher(sinks, max_queue_size=config.publish_queue_size)
    registry = SimulationRegistry(
        SqliteTripSource(config.db_path),
        publisher,
        max_segment_meters=config.max_segment_meters,
    )
    driver = SimulationDriver(registry, publisher)

    return AppContext(
        config=config,
        registry=registry,
        driver=driver,
        publisher=publisher,
        positions=positions,
        calendars=CalendarService(config.db_path),
    )


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    app = build_app_context()
    app.driver.start()
    logger.info(f"Simulation engine started (db: {app.config.db_path})")
    try:
        yield app
    finally:
        await app.registry.clear()
        await app.driver.shutdown()
        logger.info("Simulation engine stopped")


def get_app_context(ctx: Context) -> AppContext:
    return ctx.request_context.lifespan_context


# Initialize the MCP server
mcp = FastMCP(
    "Busap Transit",
    instructions=(
        "Bus transit operations - live GPS trip simulation and holiday / school calendars"
    ),
    lifespan=lifespan,
)
