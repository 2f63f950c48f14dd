from __future__ import annotations


class StepClock:
    def __init__(self, start: float = 0.0) -> None:
        self._time = start

    def __repr__(self) -> str:
        return f"StepClock(time={self._time})"

    def step(self, time: float) -> None:
        assert time >= self._time, "The arrow of time only flows forward."
        self._time = time

    def time(self) -> float:
        """Return the current simulated time in seconds."""
        return self._time
