from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from settle.events import DoubleSettled


class SettleError(Exception):
    def __init__(self, mesg: str, code: int) -> None:
        super().__init__(mesg)
        self.mesg = mesg
        self.code = code

    def __str__(self) -> str:
        return f"[{self.code:03d}] {self.mesg}"

    def __reduce__(self) -> str | tuple[Any, ...]:
        return (self.__class__, (self.mesg, self.code))


# Error codes 100-199


class ProducerFailure(SettleError):
    def __init__(self, reason: Any) -> None:
        super().__init__(f"Producer failed with {reason!r}", 100)
        self.reason = reason

    def __reduce__(self) -> str | tuple[Any, ...]:
        return (self.__class__, (self.reason,))


# Error codes 200-299


class DoubleSettlement(SettleError):
    def __init__(self, event: DoubleSettled) -> None:
        super().__init__(f"Deferred {event.id} already settled", 200)
        self.event = event

    def __reduce__(self) -> str | tuple[Any, ...]:
        return (self.__class__, (self.event,))


# Error codes 300-399


class CancelledTask(SettleError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} cancelled", 300)
        self.task_id = task_id

    def __reduce__(self) -> str | tuple[Any, ...]:
        return (self.__class__, (self.task_id,))


# Error codes 400-499


class BatchAggregateFailure(SettleError):
    def __init__(self, batch_id: str, reason: BaseException, states: dict[str, str]) -> None:
        super().__init__(f"Batch {batch_id} failed with {reason!r}", 400)
        self.batch_id = batch_id
        self.reason = reason
        self.states = states

    def __reduce__(self) -> str | tuple[Any, ...]:
        return (self.__class__, (self.batch_id, self.reason, self.states))


# Error codes 500-599


class TimedOut(SettleError):
    def __init__(self, id: str, timeout: float) -> None:
        super().__init__(f"{id} timedout after {timeout}s", 500)
        self.id = id
        self.timeout = timeout

    def __reduce__(self) -> str | tuple[Any, ...]:
        return (self.__class__, (self.id, self.timeout))


# Error codes 900-999


class InvalidStateError(SettleError):
    def __init__(self, mesg: str) -> None:
        super().__init__(mesg, 900)

    def __reduce__(self) -> str | tuple[Any, ...]:
        return (self.__class__, (self.mesg,))
