from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from settle.errors import InvalidStateError
from settle.models.result import Ko, Ok, Result

if TYPE_CHECKING:
    from collections.abc import Generator

    from settle.deferred import Deferred, Waiter

type State = Literal["CREATED", "RUNNING", "SUSPENDED", "COMPLETED", "FAILED", "CANCELLED"]

TERMINAL: tuple[State, ...] = ("COMPLETED", "FAILED", "CANCELLED")


@dataclass
class AWT:
    id: str
    target: Any


@dataclass
class TRM:
    id: str
    result: Result[Any]


class Task:
    """A suspendable unit of work driven by a generator.

    Each call to `send` resumes the generator with the outcome of the dependency it last
    yielded and runs it to its next suspension point (`AWT`) or to its end (`TRM`). Where the
    task paused and what it waits on are kept as plain attributes so the scheduler can
    detach it from its dependency when it is cancelled.
    """

    def __init__(self, id: str, gen: Generator[Any, Any, Any], deferred: Deferred[Any]) -> None:
        self.id = id
        self.gen = gen
        self.deferred = deferred

        self.state: State = "CREATED"
        self.depends_on: list[Deferred[Any]] = []
        self.waiter: Waiter | None = None
        self.history: list[Result[Any]] = []
        self.cancel_requested = False

    def __repr__(self) -> str:
        return f"Task(id={self.id}, state={self.state})"

    @property
    def done(self) -> bool:
        return self.state in TERMINAL

    @property
    def awaiting(self) -> Deferred[Any] | None:
        return self.depends_on[-1] if self.waiter is not None and self.waiter.active else None

    def send(self, value: Result[Any] | None) -> AWT | TRM:
        match self.state:
            case "RUNNING":
                msg = f"Task {self.id} resumed while running"
                raise InvalidStateError(msg)
            case "COMPLETED" | "FAILED" | "CANCELLED":
                msg = f"Task {self.id} resumed after termination ({self.state})"
                raise InvalidStateError(msg)
            case "CREATED":
                assert value is None, "First resumption must not carry a value."
            case "SUSPENDED":
                assert value is not None, "Resumption must carry the awaited outcome."

        self.state = "RUNNING"
        self.waiter = None

        try:
            match value:
                case None:
                    yielded = next(self.gen)
                case Ok(v):
                    self.history.append(value)
                    yielded = self.gen.send(v)
                case Ko(e):
                    self.history.append(value)
                    yielded = self.gen.throw(e)
        except StopIteration as e:
            self.state = "COMPLETED"
            return TRM(self.id, Ok(e.value))
        except Exception as e:
            self.state = "FAILED"
            return TRM(self.id, Ko(e))

        self.state = "SUSPENDED"
        return AWT(self.id, yielded)

    def suspend_on(self, deferred: Deferred[Any], waiter: Waiter) -> None:
        assert self.state == "SUSPENDED", "Task must be suspended."
        self.depends_on.append(deferred)
        self.waiter = waiter

    def cancel(self) -> None:
        assert not self.done, "Task must not be terminal."

        if self.waiter is not None and self.depends_on:
            self.depends_on[-1].detach(self.waiter)
        self.waiter = None

        # runs pending finally blocks, work done before the last suspension stays done
        self.state = "CANCELLED"
        self.gen.close()
