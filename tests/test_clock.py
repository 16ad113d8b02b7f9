import pytest

from busap_mcp.simulation.clock import SimulationClock
from conftest import FakeTime


def test_advance_scales_real_time(fake_time: FakeTime) -> None:
    clock = SimulationClock(speed=10, time_source=fake_time)

    fake_time.advance(6)

    assert clock.advance() == pytest.approx(60)


def test_advance_reanchors(fake_time: FakeTime) -> None:
    clock = SimulationClock(speed=2, time_source=fake_time)

    fake_time.advance(1)
    clock.advance()
    fake_time.advance(1)

    assert clock.advance() == pytest.approx(2)
    assert clock.advance() == 0


def test_paused_time_contributes_nothing(fake_time: FakeTime) -> None:
    clock = SimulationClock(speed=10, time_source=fake_time)

    fake_time.advance(1)
    clock.pause()
    fake_time.advance(3600)
    assert clock.is_paused
    clock.resume()
    fake_time.advance(1)

    # 1 s before the pause plus 1 s after
    assert clock.advance() == pytest.approx(20)


def test_advance_while_paused_returns_accrued_time_once(fake_time: FakeTime) -> None:
    clock = SimulationClock(speed=5, time_source=fake_time)

    fake_time.advance(2)
    clock.pause()
    fake_time.advance(100)

    assert clock.advance() == pytest.approx(10)
    assert clock.advance() == 0


def test_pause_and_resume_are_idempotent(fake_time: FakeTime) -> None:
    clock = SimulationClock(speed=1, time_source=fake_time)

    clock.resume()
    fake_time.advance(1)
    clock.pause()
    clock.pause()
    fake_time.advance(1)
    clock.resume()
    clock.resume()
    fake_time.advance(1)

    assert clock.advance() == pytest.approx(2)


@pytest.mark.parametrize("speed", [0, -1])
def test_speed_must_be_positive(speed: float) -> None:
    with pytest.raises(ValueError):
        SimulationClock(speed=speed)
