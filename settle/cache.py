from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import jsonpickle

from settle import utils
from settle.deferred import Deferred
from settle.errors import ProducerFailure
from settle.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from settle.models.clock import Clock
    from settle.models.producer import Producer
    from settle.models.sink import DiagnosticSink


def fingerprint(func: Callable[..., Any], *args: Any, **kwargs: Any) -> str:
    """Derive a stable cache key from a function and the arguments it is called with."""
    payload = jsonpickle.encode([list(args), sorted(kwargs.items())], make_refs=False)
    canonical = json.dumps(json.loads(payload), sort_keys=True, separators=(",", ":"))
    return f"{utils.qualname(func)}:{hashlib.sha256(canonical.encode()).hexdigest()}"


@dataclass
class Entry:
    fingerprint: str
    deferred: Deferred[Any]
    created_on: float


class MemoCache:
    """Memoized store of deferreds keyed by fingerprint.

    At most one deferred exists per fingerprint: lookups made while the work is in flight
    share the deferred of the first lookup and the producer is invoked only once. A
    rejected entry stays rejected until it is invalidated, unless `retry_on_reject` is set.
    Entries only expire when a `ttl` is configured, and never while they are still pending.
    """

    def __init__(
        self,
        *,
        retry_on_reject: bool = False,
        ttl: float | None = None,
        clock: Clock | None = None,
        sink: DiagnosticSink | None = None,
    ) -> None:
        if not isinstance(retry_on_reject, bool):
            msg = f"retry_on_reject must be `bool`, got {type(retry_on_reject).__name__}"
            raise TypeError(msg)

        if ttl is not None and not isinstance(ttl, int | float):
            msg = f"ttl must be `float | None`, got {type(ttl).__name__}"
            raise TypeError(msg)

        if ttl is not None and not ttl > 0:
            msg = "ttl must be greater than zero"
            raise ValueError(msg)

        self.retry_on_reject = retry_on_reject
        self.ttl = ttl
        self.clock: Clock = clock or time
        self.sink = sink
        self.producer_calls = 0

        self._entries: dict[str, Entry] = {}

    def __repr__(self) -> str:
        return f"MemoCache(entries={len(self._entries)}, retry_on_reject={self.retry_on_reject}, ttl={self.ttl})"

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._entries

    def get(self, fingerprint: str) -> Deferred[Any] | None:
        entry = self._lookup(fingerprint)
        return entry.deferred if entry else None

    def get_or_create[T](self, fingerprint: str, producer: Producer[T]) -> Deferred[T]:
        if entry := self._lookup(fingerprint):
            return entry.deferred

        # the entry is in place before the producer runs, a producer that looks up
        # its own fingerprint observes the same deferred
        deferred = Deferred[T](f"cache:{fingerprint}", sink=self.sink)
        self._entries[fingerprint] = Entry(fingerprint, deferred, self.clock.time())
        self.producer_calls += 1

        try:
            produced = producer()
        except Exception as e:
            logger.warning("Producer for %s failed with %r", fingerprint, e)
            failure = ProducerFailure(e)
            failure.__cause__ = e
            deferred.reject(failure)
            return deferred

        if not isinstance(produced, Deferred):
            self._entries.pop(fingerprint, None)
            msg = f"producer must return `Deferred`, got {type(produced).__name__}"
            deferred.reject(TypeError(msg))
            raise TypeError(msg)

        produced.await_on(deferred.settle)
        return deferred

    def invalidate(self, fingerprint: str) -> bool:
        return self._entries.pop(fingerprint, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def _lookup(self, fingerprint: str) -> Entry | None:
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None

        if entry.deferred.settled and self.ttl is not None and self.clock.time() - entry.created_on >= self.ttl:
            del self._entries[fingerprint]
            return None

        if entry.deferred.rejected and self.retry_on_reject:
            del self._entries[fingerprint]
            return None

        return entry
