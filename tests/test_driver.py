import asyncio

import pytest

from busap_mcp.models.simulation import SimulationSettings, SimulationStatus
from busap_mcp.models.transit import TripRoute
from busap_mcp.simulation.driver import SimulationDriver
from busap_mcp.simulation.publisher import PositionPublisher
from busap_mcp.simulation.registry import SimulationRegistry
from conftest import FakeTripSource, RecordingSink

FAST = SimulationSettings(speed_multiplier=100, update_interval_ms=500, random_deviation=0)


@pytest.fixture
def short_trip(line_trip: TripRoute) -> TripRoute:
    """Thirty scheduled seconds: done on the first tick at x100."""
    return line_trip.model_copy(update={"planned_duration_seconds": 30.0})


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
async def engine(short_trip: TripRoute, sink: RecordingSink):
    publisher = PositionPublisher([sink])
    registry = SimulationRegistry(FakeTripSource(short_trip), publisher)
    driver = SimulationDriver(registry, publisher)
    driver.start()
    yield registry, driver
    await driver.shutdown()


async def wait_for_status(registry: SimulationRegistry, session_id: str, status, timeout=5.0):
    async def poll():
        while registry.get(session_id).status is not status:
            await asyncio.sleep(0.05)

    await asyncio.wait_for(poll(), timeout)


async def test_driver_runs_session_to_completion(engine, sink) -> None:
    registry, driver = engine

    snapshot = await registry.start("T1", FAST)
    assert driver.running_tasks == 1

    await wait_for_status(registry, snapshot.session_id, SimulationStatus.COMPLETED)
    await driver.shutdown()

    assert driver.running_tasks == 0
    assert sink.updates[0].elapsed_ms == 0
    assert sink.updates[-1].status == SimulationStatus.COMPLETED
    assert registry.active_session_for_trip("T1") is None


async def test_paused_session_is_not_ticked(engine) -> None:
    registry, driver = engine
    snapshot = await registry.start("T1", FAST)
    await registry.pause(snapshot.session_id)

    await asyncio.sleep(0.7)

    state = registry.get(snapshot.session_id)
    assert state.status == SimulationStatus.PAUSED
    assert state.elapsed_ms == 0
    assert driver.running_tasks == 1


async def test_stopped_session_task_ends(engine) -> None:
    registry, driver = engine
    snapshot = await registry.start("T1", FAST)

    await registry.stop(snapshot.session_id)
    await asyncio.sleep(0.7)

    assert driver.running_tasks == 0


async def test_shutdown_cancels_tasks(engine) -> None:
    registry, driver = engine
    await registry.start("T1", FAST)

    await driver.shutdown()

    assert driver.running_tasks == 0
