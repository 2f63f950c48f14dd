from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from settle.deferred import Deferred

# A producer starts a unit of work and returns the deferred that the work settles. It is
# expected to settle the deferred at most once; the core imposes no liveness on it.
type Producer[T] = Callable[[], Deferred[T]]
