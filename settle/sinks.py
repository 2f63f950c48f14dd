from __future__ import annotations

from typing import TYPE_CHECKING, final

from settle.events import CancelRequested, DoubleSettled
from settle.logging import logger

if TYPE_CHECKING:
    from settle.events import Event


@final
class LoggingSink:
    def emit(self, event: Event) -> None:
        match event:
            case DoubleSettled(id, settled, attempted):
                logger.warning("Deferred %s already settled with %s, ignoring %s", id, settled, attempted)
            case CancelRequested(task_id, tick, batch_id, state):
                logger.debug("Cancel requested for task %s (tick=%s, batch=%s, state=%s)", task_id, tick, batch_id, state)


@final
class ListSink:
    def __init__(self) -> None:
        self.events: list[Event] = []

    def emit(self, event: Event) -> None:
        self.events.append(event)

    def of[T](self, kind: type[T]) -> list[T]:
        return [e for e in self.events if isinstance(e, kind)]
