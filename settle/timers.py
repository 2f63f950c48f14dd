from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Any

from settle.clocks import StepClock
from settle.deferred import Deferred
from settle.delay_queue import DelayQ
from settle.models.result import Ko, Ok, Result

if TYPE_CHECKING:
    from settle.models.sink import DiagnosticSink


class StepTimer:
    """Timer on simulated time.

    Deferreds handed out by `after` and `fail_after` settle when `advance` moves the clock
    past their deadline, in deadline order and first come first served for equal deadlines.
    Everything due in one `advance` settles as a single step.
    Nothing settles on its own, not even a zero delay.
    """

    def __init__(self, clock: StepClock | None = None, *, sink: DiagnosticSink | None = None) -> None:
        self.clock = clock or StepClock()
        self.sink = sink

        self._delayed = DelayQ[tuple[Deferred[Any], Result[Any]]]()
        self._counter = itertools.count(1)

    def __repr__(self) -> str:
        return f"StepTimer(time={self.clock.time()}, pending={self.pending})"

    @property
    def pending(self) -> int:
        return len(self._delayed)

    @property
    def next_deadline(self) -> float | None:
        return self._delayed.next()

    def after(self, delay: float, value: Any = None) -> Deferred[Any]:
        return self._schedule(delay, Ok(value))

    def fail_after(self, delay: float, reason: BaseException) -> Deferred[Any]:
        return self._schedule(delay, Ko(reason))

    def advance(self, to: float | None = None) -> int:
        if to is None:
            to = self._delayed.next()
            if to is None:
                return 0

        self.clock.step(to)

        due = self._delayed.get(to)
        Deferred.settle_all(due)

        return len(due)

    def _schedule(self, delay: float, result: Result[Any]) -> Deferred[Any]:
        if not isinstance(delay, int | float):
            msg = f"delay must be `float`, got {type(delay).__name__}"
            raise TypeError(msg)

        if not delay >= 0:
            msg = "delay must be greater than or equal to zero"
            raise ValueError(msg)

        deferred = Deferred[Any](f"timer.{next(self._counter)}", sink=self.sink)
        self._delayed.add((deferred, result), self.clock.time() + delay)
        return deferred
