from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from settle.batch import Batch
    from settle.deferred import Deferred
    from settle.task import State, Task


class Handle[T]:
    def __init__(self, target: Task | Batch, cancel: Callable[[Handle[Any]], bool]) -> None:
        self._target = target
        self._cancel = cancel

    def __repr__(self) -> str:
        return f"Handle(id={self.id}, state={self.state})"

    @property
    def id(self) -> str:
        return self._target.id

    @property
    def target(self) -> Task | Batch:
        return self._target

    @property
    def state(self) -> State:
        return self._target.state

    @property
    def deferred(self) -> Deferred[T]:
        assert self._target.deferred is not None, "Deferred must be set."
        return self._target.deferred

    def done(self) -> bool:
        return self.deferred.settled

    def result(self) -> T:
        """Return the value, or raise the failure reason.

        Raises `CancelledTask` for a cancelled target and `InvalidStateError` while it is
        still pending.
        """
        return self.deferred.value()

    def cancel(self) -> bool:
        return self._cancel(self)
