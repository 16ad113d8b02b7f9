"""Scheduler that ticks running sessions on their own cadence.

Each session gets one asyncio task that sleeps the session's update interval
and then ticks it through the registry. Paused sessions keep their task but
are not ticked; the task ends once the session stops or completes.
"""

import asyncio
import contextlib
import logging

from busap_mcp.errors import NotFoundError
from busap_mcp.simulation.publisher import PositionPublisher
from busap_mcp.simulation.registry import SimulationRegistry
from busap_mcp.simulation.session import SimulationSession

logger = logging.getLogger(__name__)


class SimulationDriver:
    """Owns the tick tasks and the publisher consumer task."""

    def __init__(self, registry: SimulationRegistry, publisher: PositionPublisher) -> None:
        self._registry = registry
        self._publisher = publisher
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._publisher_task: asyncio.Task[None] | None = None
        registry.add_start_listener(self._on_session_started)

    @property
    def running_tasks(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    def start(self) -> None:
        """Start delivering published positions. Needs a running event loop."""
        if self._publisher_task is None or self._publisher_task.done():
            self._publisher_task = asyncio.create_task(self._publisher.run())

    def _on_session_started(self, session: SimulationSession) -> None:
        task = asyncio.create_task(self._drive(session.session_id))
        self._tasks[session.session_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(session.session_id, None))

    async def _drive(self, session_id: str) -> None:
        try:
            session = self._registry.get_session(session_id)
        except NotFoundError:
            return
        interval = session.settings.update_interval_ms / 1000

        while not session.is_terminal:
            await asyncio.sleep(interval)
            try:
                await self._registry.tick(session_id)
            except NotFoundError:
                # Purged or cleared while we slept
                return
        logger.debug(f"Driver for {session_id} finished ({session.status.value})")

    async def shutdown(self) -> None:
        """Cancel all tick tasks, then deliver whatever is still queued."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()

        if self._publisher_task is not None:
            self._publisher_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._publisher_task
            self._publisher_task = None

        await self._publisher.flush()
