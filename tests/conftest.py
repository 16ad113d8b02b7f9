from pathlib import Path
from types import SimpleNamespace

import pytest

from busap_mcp.data.feed_loader import FeedLoader
from busap_mcp.errors import NotFoundError
from busap_mcp.models.simulation import PositionUpdate
from busap_mcp.models.transit import AvailableTrip, TripRoute, TripStop


class FakeTime:
    """Manually advanced monotonic time source."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSink:
    """Position sink that keeps every update it receives."""

    def __init__(self) -> None:
        self.updates: list[PositionUpdate] = []

    async def publish(self, update: PositionUpdate) -> None:
        self.updates.append(update)


class FakeTripSource:
    """In-memory trips keyed by id."""

    def __init__(self, *trips: TripRoute) -> None:
        self.trips = {trip.trip_id: trip for trip in trips}
        self.statuses: dict[str, str] = {}

    async def get_trip_route(self, trip_id: str) -> TripRoute:
        if trip_id not in self.trips:
            raise NotFoundError(f"Trip not found: {trip_id}")
        return self.trips[trip_id]

    async def list_available_trips(self, limit: int = 20) -> list[AvailableTrip]:
        return [
            AvailableTrip(
                trip_id=trip.trip_id,
                route_id=trip.route_id,
                vehicle_id=trip.vehicle_id,
                status=trip.status,
                stop_count=len(trip.stops),
            )
            for trip in list(self.trips.values())[:limit]
        ]

    async def set_trip_status(self, trip_id: str, status: str) -> None:
        self.statuses[trip_id] = status


def make_ctx(app) -> SimpleNamespace:
    """Minimal stand-in for an MCP Context carrying the lifespan state."""
    return SimpleNamespace(request_context=SimpleNamespace(lifespan_context=app))


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def line_trip() -> TripRoute:
    """Three stops due east along latitude 50, ten minutes end to end."""
    return TripRoute(
        trip_id="T1",
        route_id="R10",
        route_name="10 Dworzec - Rynek",
        vehicle_id="BUS-1",
        status="scheduled",
        stops=[
            TripStop(
                stop_id="S1",
                stop_name="Dworzec",
                stop_sequence=1,
                latitude=50.0,
                longitude=19.90,
                departure_time="08:00:00",
            ),
            TripStop(
                stop_id="S2",
                stop_name="Plac",
                stop_sequence=2,
                latitude=50.0,
                longitude=19.91,
                arrival_time="08:05:00",
            ),
            TripStop(
                stop_id="S3",
                stop_name="Rynek",
                stop_sequence=3,
                latitude=50.0,
                longitude=19.92,
                arrival_time="08:10:00",
            ),
        ],
        departure_time="08:00:00",
        arrival_time="08:10:00",
        planned_duration_seconds=600.0,
    )


@pytest.fixture
def sample_feed_dir(tmp_path: Path) -> Path:
    """Create a small feed directory.

    T1: three stops, BUS-1. T2: follows shape SH1. T3: no vehicle.
    T4: only one stop with coordinates. T5: already completed.
    """
    feed_dir = tmp_path / "feed"
    feed_dir.mkdir()

    (feed_dir / "routes.txt").write_text(
        "route_id,route_short_name,route_long_name,route_type\n"
        "R10,10,Dworzec - Rynek,3\n"
        "R20,20,Osiedle - Centrum,3\n"
    )

    (feed_dir / "stops.txt").write_text(
        "stop_id,stop_code,stop_name,stop_lat,stop_lon\n"
        "S1,1001,Dworzec,50.0000,19.9000\n"
        "S2,1002,Plac,50.0000,19.9100\n"
        "S3,1003,Rynek,50.0000,19.9200\n"
        "S4,1004,Zajezdnia,,\n"
    )

    (feed_dir / "trips.txt").write_text(
        "trip_id,route_id,trip_headsign,shape_id,vehicle_id,status\n"
        "T1,R10,Rynek,,BUS-1,\n"
        "T2,R10,Dworzec,SH1,BUS-2,scheduled\n"
        "T3,R20,Centrum,,,scheduled\n"
        "T4,R20,Zajezdnia,,BUS-4,\n"
        "T5,R10,Rynek,,BUS-5,completed\n"
    )

    (feed_dir / "stop_times.txt").write_text(
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "T1,08:00:00,08:00:00,S1,1\n"
        "T1,08:05:00,08:05:00,S2,2\n"
        "T1,08:10:00,08:10:00,S3,3\n"
        "T2,09:00:00,09:00:00,S3,1\n"
        "T2,09:20:00,09:20:00,S1,2\n"
        "T3,07:00:00,07:00:00,S1,1\n"
        "T3,07:10:00,07:10:00,S2,2\n"
        "T4,10:00:00,10:00:00,S1,1\n"
        "T4,10:15:00,10:15:00,S4,2\n"
        "T5,06:00:00,06:00:00,S1,1\n"
        "T5,06:10:00,06:10:00,S3,2\n"
    )

    (feed_dir / "shapes.txt").write_text(
        "shape_id,shape_pt_lat,shape_pt_lon,shape_pt_sequence\n"
        "SH1,50.0000,19.9200,1\n"
        "SH1,50.0050,19.9150,2\n"
        "SH1,50.0000,19.9000,3\n"
    )

    return feed_dir


@pytest.fixture
async def feed_db(sample_feed_dir: Path, tmp_path: Path) -> Path:
    """Database ingested from the sample feed."""
    db_path = tmp_path / "busap.db"
    await FeedLoader(db_path).ingest(sample_feed_dir)
    return db_path
