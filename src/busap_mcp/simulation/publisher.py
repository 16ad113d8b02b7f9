"""Best-effort fan-out of position updates to sinks.

Ticks enqueue updates without waiting. A consumer task delivers them to every
sink; sink failures are logged and never reach the tick loop.
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol

import aiosqlite

from busap_mcp.data.cache import TTLCache
from busap_mcp.data.database import get_db
from busap_mcp.models.simulation import PositionUpdate

logger = logging.getLogger(__name__)


class PositionSink(Protocol):
    async def publish(self, update: PositionUpdate) -> None: ...


class PositionCacheSink:
    """Keeps the latest position per vehicle for a limited time."""

    def __init__(self, ttl: float = 60.0):
        self.cache: TTLCache[PositionUpdate] = TTLCache(ttl=ttl)

    async def publish(self, update: PositionUpdate) -> None:
        self.cache.set(update.vehicle_id, update)

    def latest(self, vehicle_id: str) -> PositionUpdate | None:
        return self.cache.get(vehicle_id)


class SqlitePositionSink:
    """Appends every update to the vehicle_positions table.

    The runtime tables are created on the first insert and again after an
    insert fails, for example when the database file was replaced.
    """

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path
        self._schema_ready = False

    async def publish(self, update: PositionUpdate) -> None:
        try:
            async with get_db(self.db_path, create=not self._schema_ready) as db:
                await db.execute(
                    """
                    INSERT INTO vehicle_positions (
                        vehicle_id, trip_id, session_id, latitude, longitude,
                        speed, heading, accuracy, recorded_at, simulated
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        update.vehicle_id,
                        update.trip_id,
                        update.session_id,
                        update.latitude,
                        update.longitude,
                        update.speed,
                        update.heading,
                        update.accuracy,
                        update.timestamp,
                        int(update.simulated),
                    ),
                )
                await db.commit()
        except (aiosqlite.Error, FileNotFoundError):
            self._schema_ready = False
            raise
        self._schema_ready = True


class PositionPublisher:
    """Bounded queue between the tick loop and the position sinks."""

    def __init__(self, sinks: list[PositionSink], max_queue_size: int = 1000):
        self.sinks = list(sinks)
        self._queue: asyncio.Queue[PositionUpdate] = asyncio.Queue(maxsize=max_queue_size)
        self.dropped = 0

    def publish_nowait(self, update: PositionUpdate) -> None:
        """Enqueue an update without blocking; drop it if the queue is full."""
        try:
            self._queue.put_nowait(update)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                f"Position queue full, dropped update for vehicle {update.vehicle_id}"
            )

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _deliver(self, update: PositionUpdate) -> None:
        for sink in self.sinks:
            try:
                await sink.publish(update)
            except Exception as e:
                logger.warning(f"Failed to publish position to {type(sink).__name__}: {e}")

    async def run(self) -> None:
        """Consume the queue forever. Run as a background task."""
        while True:
            update = await self._queue.get()
            try:
                await self._deliver(update)
            finally:
                self._queue.task_done()

    async def flush(self) -> int:
        """Deliver everything currently queued. Returns the number delivered."""
        delivered = 0
        while True:
            try:
                update = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return delivered
            try:
                await self._deliver(update)
                delivered += 1
            finally:
                self._queue.task_done()
