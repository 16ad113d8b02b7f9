"""Simulation clock with a speed multiplier and pause/resume.

The clock does not run on its own. The session asks it how much simulated
time passed since the previous tick; the answer is the real time since the
last anchor multiplied by the speed, and paused time counts as zero.
"""

import time
from collections.abc import Callable

TimeSource = Callable[[], float]


class SimulationClock:
    """Maps wall-clock (monotonic) time to simulated time."""

    def __init__(self, speed: float = 1.0, time_source: TimeSource = time.monotonic) -> None:
        if speed <= 0:
            raise ValueError("speed must be positive")
        self._speed = speed
        self._now = time_source
        self._anchor: float | None = self._now()
        self._pending = 0.0

    @property
    def speed(self) -> float:
        """Current speed multiplier."""
        return self._speed

    @property
    def is_paused(self) -> bool:
        return self._anchor is None

    def advance(self) -> float:
        """Return simulated seconds since the previous advance, then re-anchor.

        Time accrued before a pause is returned by the first advance after
        resume.
        """
        simulated = self._pending
        self._pending = 0.0
        if self._anchor is not None:
            now = self._now()
            simulated += max(0.0, now - self._anchor) * self._speed
            self._anchor = now
        return simulated

    def pause(self) -> None:
        """Freeze the clock, keeping time accrued up to now."""
        if self._anchor is None:
            return
        now = self._now()
        self._pending += max(0.0, now - self._anchor) * self._speed
        self._anchor = None

    def resume(self) -> None:
        """Re-anchor the origin so paused real time is skipped."""
        if self._anchor is not None:
            return
        self._anchor = self._now()
