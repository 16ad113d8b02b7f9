import pytest

from busap_mcp.errors import InvalidStateError
from busap_mcp.models.simulation import SimulationSettings, SimulationStatus
from busap_mcp.models.transit import TripRoute
from busap_mcp.simulation.clock import SimulationClock
from busap_mcp.simulation.route_path import RoutePath
from busap_mcp.simulation.session import SimulationSession
from conftest import FakeTime


def make_session(
    trip: TripRoute,
    fake_time: FakeTime,
    speed: float = 10,
    random_deviation: float = 0,
    seed: int | None = None,
) -> SimulationSession:
    settings = SimulationSettings(speed_multiplier=speed, random_deviation=random_deviation)
    return SimulationSession(
        session_id="sim_test",
        trip=trip,
        path=RoutePath.from_stops(trip.stops),
        settings=settings,
        total_planned_duration=trip.planned_duration_seconds,
        clock=SimulationClock(speed, time_source=fake_time),
        seed=seed,
    )


class TestTick:
    def test_starts_at_first_stop(self, line_trip, fake_time) -> None:
        session = make_session(line_trip, fake_time)

        snapshot = session.snapshot()
        assert snapshot.status == SimulationStatus.RUNNING
        assert snapshot.elapsed_ms == 0
        assert (snapshot.latitude, snapshot.longitude) == (50.0, 19.90)
        assert snapshot.point_count == 3
        assert snapshot.route_name == "10 Dworzec - Rynek"

    def test_elapsed_follows_speed_multiplier(self, line_trip, fake_time) -> None:
        session = make_session(line_trip, fake_time, speed=10)

        fake_time.advance(6)
        update = session.tick()

        assert session.elapsed == pytest.approx(60)
        assert update.elapsed_ms == pytest.approx(60_000)
        assert update.status == SimulationStatus.RUNNING
        assert update.vehicle_id == "BUS-1"
        assert update.speed > 0

    def test_progress_is_monotonic_until_completed(self, line_trip, fake_time) -> None:
        session = make_session(line_trip, fake_time, speed=10)
        fractions = []
        elapsed = []

        while session.status is SimulationStatus.RUNNING:
            fake_time.advance(7)
            session.tick()
            fractions.append(session.position.fraction_complete)
            elapsed.append(session.elapsed)

        assert fractions == sorted(fractions)
        assert elapsed == sorted(elapsed)
        assert fractions[-1] == 1.0
        assert session.status == SimulationStatus.COMPLETED
        assert session.finished_at is not None

    def test_completed_session_reports_last_stop(self, line_trip, fake_time) -> None:
        session = make_session(line_trip, fake_time, speed=100)

        fake_time.advance(10)
        update = session.tick()

        assert update.status == SimulationStatus.COMPLETED
        assert (update.latitude, update.longitude) == (50.0, 19.92)
        assert update.speed == 0.0
        assert session.is_terminal

    def test_completed_session_cannot_tick(self, line_trip, fake_time) -> None:
        session = make_session(line_trip, fake_time, speed=100)
        fake_time.advance(10)
        session.tick()
        position = session.position

        fake_time.advance(10)
        with pytest.raises(InvalidStateError):
            session.tick()
        assert session.position is position

    def test_seeded_sessions_jitter_identically(self, line_trip, fake_time) -> None:
        a = make_session(line_trip, fake_time, random_deviation=50, seed=11)
        b = make_session(line_trip, fake_time, random_deviation=50, seed=11)

        fake_time.advance(3)
        update_a, update_b = a.tick(), b.tick()

        assert (update_a.latitude, update_a.longitude) == (update_b.latitude, update_b.longitude)
        assert update_a.accuracy == update_b.accuracy
        assert 5 <= update_a.accuracy <= 15

    def test_failed_tick_stops_session(self, line_trip, fake_time, monkeypatch) -> None:
        session = make_session(line_trip, fake_time)

        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("busap_mcp.simulation.session.compute_position", broken)
        fake_time.advance(1)

        with pytest.raises(RuntimeError):
            session.tick()
        assert session.status == SimulationStatus.STOPPED
        assert session.failure_reason == "Tick failed: boom"


class TestLifecycle:
    def test_pause_freezes_elapsed(self, line_trip, fake_time) -> None:
        session = make_session(line_trip, fake_time, speed=10)
        fake_time.advance(2)
        session.tick()
        paused_at = session.elapsed

        session.pause()
        fake_time.advance(500)
        assert session.snapshot().elapsed_ms == pytest.approx(paused_at * 1000)

        session.resume()
        fake_time.advance(1)
        session.tick()

        assert session.elapsed == pytest.approx(paused_at + 10)

    def test_paused_session_cannot_tick(self, line_trip, fake_time) -> None:
        session = make_session(line_trip, fake_time)
        session.pause()

        with pytest.raises(InvalidStateError):
            session.tick()

    def test_pause_requires_running(self, line_trip, fake_time) -> None:
        session = make_session(line_trip, fake_time)
        session.pause()

        with pytest.raises(InvalidStateError, match="paused"):
            session.pause()

    def test_resume_requires_paused(self, line_trip, fake_time) -> None:
        session = make_session(line_trip, fake_time)

        with pytest.raises(InvalidStateError):
            session.resume()

    @pytest.mark.parametrize("pause_first", [False, True])
    def test_stop_from_running_or_paused(self, line_trip, fake_time, pause_first) -> None:
        session = make_session(line_trip, fake_time)
        if pause_first:
            session.pause()

        session.stop()

        assert session.status == SimulationStatus.STOPPED
        assert session.is_terminal

    def test_terminal_states_are_final(self, line_trip, fake_time) -> None:
        session = make_session(line_trip, fake_time)
        session.stop()

        for operation in (session.stop, session.pause, session.resume, session.tick):
            with pytest.raises(InvalidStateError):
                operation()
        assert session.status == SimulationStatus.STOPPED

    def test_snapshot_is_detached(self, line_trip, fake_time) -> None:
        session = make_session(line_trip, fake_time)
        snapshot = session.snapshot()

        session.pause()

        assert snapshot.status == SimulationStatus.RUNNING
        assert session.snapshot().status == SimulationStatus.PAUSED
