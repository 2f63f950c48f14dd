from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from settle.events import Event


@runtime_checkable
class DiagnosticSink(Protocol):
    def emit(self, event: Event, /) -> None: ...
