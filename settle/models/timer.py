from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from settle.deferred import Deferred


@runtime_checkable
class Timer(Protocol):
    def after(self, delay: float, value: Any = None, /) -> Deferred[Any]: ...
    def fail_after(self, delay: float, reason: BaseException, /) -> Deferred[Any]: ...
