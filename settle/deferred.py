from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Protocol

from settle.errors import DoubleSettlement, InvalidStateError, ProducerFailure
from settle.events import DoubleSettled
from settle.logging import logger
from settle.models.result import Ko, Ok, Result, capture, unwrap
from settle.sinks import LoggingSink

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from settle.models.sink import DiagnosticSink

type State = Literal["PENDING", "FULFILLED", "REJECTED"]

_default_sink = LoggingSink()


class Owner(Protocol):
    def advance(self, deferred: Deferred[Any] | None = None, /) -> None: ...


@dataclass(eq=False)
class Waiter:
    callback: Callable[[Result[Any]], object]
    owner: Owner | None = None
    active: bool = True


class Deferred[T]:
    """Single-resolution container for a future outcome.

    A deferred starts PENDING and settles exactly once, either FULFILLED with a value or
    REJECTED with an exception. Later attempts to settle it are ignored and reported to the
    diagnostic sink as `DoubleSettled` events.

    Waiters are resumed in the order they registered. Consecutive waiters that belong to an
    owner (a scheduler) are queued on it and the owner is advanced once for the run, so they
    share one tick; the owner always advances before a later waiter without an owner runs.
    """

    def __init__(self, id: str | None = None, *, sink: DiagnosticSink | None = None) -> None:
        self.id = id or uuid.uuid4().hex
        self.sink = sink or _default_sink
        self.state: State = "PENDING"
        self.result: Result[T] | None = None
        self.waiters: list[Waiter] = []
        self._draining = False

    def __repr__(self) -> str:
        return f"Deferred(id={self.id}, state={self.state}, waiters={len(self.waiters)})"

    @classmethod
    def from_value(cls, value: T, *, id: str | None = None, sink: DiagnosticSink | None = None) -> Deferred[T]:
        deferred = cls(id, sink=sink)
        deferred.resolve(value)
        return deferred

    @classmethod
    def from_reason(cls, reason: Any, *, id: str | None = None, sink: DiagnosticSink | None = None) -> Deferred[T]:
        deferred = cls(id, sink=sink)
        deferred.reject(reason)
        return deferred

    @property
    def pending(self) -> bool:
        return self.state == "PENDING"

    @property
    def settled(self) -> bool:
        return not self.pending

    @property
    def fulfilled(self) -> bool:
        return self.state == "FULFILLED"

    @property
    def rejected(self) -> bool:
        return self.state == "REJECTED"

    def value(self) -> T:
        """Return the fulfilled value or raise the rejection reason."""
        if self.result is None:
            msg = f"Deferred {self.id} is still pending"
            raise InvalidStateError(msg)
        return unwrap(self.result)

    def settle(self, result: Result[T], *, strict: bool = False) -> bool:
        failures: list[BaseException] = []
        settled = self._settle(result, strict, None, failures)

        if failures:
            raise failures[0]
        return settled

    @staticmethod
    def settle_all(settlements: Iterable[tuple[Deferred[Any], Result[Any]]]) -> None:
        """Settle several deferreds as one step.

        Owners are advanced once every deferred is settled, so tasks woken by any of them
        share a scheduler tick.
        """
        owners: list[Owner] = []
        failures: list[BaseException] = []

        for deferred, result in settlements:
            deferred._settle(result, False, owners, failures)
        _advance(owners)

        if failures:
            raise failures[0]

    def resolve(self, value: T, *, strict: bool = False) -> bool:
        return self.settle(Ok(value), strict=strict)

    def reject(self, reason: Any, *, strict: bool = False) -> bool:
        # only exceptions can be thrown into a task, anything else is wrapped
        if not isinstance(reason, BaseException):
            reason = ProducerFailure(reason)
        return self.settle(Ko(reason), strict=strict)

    def await_on(self, callback: Callable[[Result[T]], object], *, owner: Owner | None = None) -> Waiter:
        waiter = Waiter(callback, owner)
        self.waiters.append(waiter)

        if self.settled:
            failures = self._drain(None)
            if failures:
                raise failures[0]

        return waiter

    def detach(self, waiter: Waiter) -> bool:
        if not waiter.active:
            return False

        waiter.active = False
        if waiter in self.waiters:
            self.waiters.remove(waiter)
        return True

    def then[U](
        self,
        on_fulfilled: Callable[[T], U | Deferred[U]] | None = None,
        on_rejected: Callable[[BaseException], U | Deferred[U]] | None = None,
    ) -> Deferred[U]:
        derived = Deferred[U](sink=self.sink)

        def callback(result: Result[T]) -> None:
            match result:
                case Ok(v) if on_fulfilled is not None:
                    handler, arg = on_fulfilled, v
                case Ko(e) if on_rejected is not None:
                    handler, arg = on_rejected, e
                case _:
                    derived.settle(result)
                    return

            match capture(handler, arg):
                case Ok(Deferred() as adopted):
                    adopted.await_on(derived.settle)
                case handled:
                    derived.settle(handled)

        self.await_on(callback)
        return derived

    def catch[U](self, on_rejected: Callable[[BaseException], U | Deferred[U]]) -> Deferred[T | U]:
        return self.then(None, on_rejected)

    def _settle(self, result: Result[T], strict: bool, owners: list[Owner] | None, failures: list[BaseException]) -> bool:
        if not isinstance(result, (Ok, Ko)):
            msg = f"result must be `Ok | Ko`, got {type(result).__name__}"
            raise TypeError(msg)

        if self.result is not None:
            event = DoubleSettled(self.id, self.result, result)
            self.sink.emit(event)
            if strict:
                raise DoubleSettlement(event)
            return False

        if isinstance(result, Ko) and not isinstance(result.value, BaseException):
            result = Ko(ProducerFailure(result.value))

        self.state = "FULFILLED" if isinstance(result, Ok) else "REJECTED"
        self.result = result
        failures.extend(self._drain(owners))
        return True

    def _drain(self, owners: list[Owner] | None) -> list[BaseException]:
        """Hand the outcome to every active waiter in registration order.

        Owners collect their waiters and are advanced before the next waiter without an owner
        runs, and at the end of the fan-out unless the caller advances them. A failing callback
        is logged and returned, the remaining waiters still run.
        """
        # waiters added while draining are picked up by the outer loop, after
        # every waiter that was registered before them
        if self._draining:
            return []

        assert self.result is not None, "Result must be set."
        pending: list[Owner] = [] if owners is None else owners
        failures: list[BaseException] = []

        self._draining = True
        try:
            while self.waiters:
                current, self.waiters = self.waiters, []

                for waiter in current:
                    if not waiter.active:
                        # detached during this fan-out
                        continue

                    waiter.active = False
                    if waiter.owner is None:
                        _advance(pending, self)

                    match capture(waiter.callback, self.result):
                        case Ko(e):
                            logger.error("Waiter of deferred %s failed with %r", self.id, e)
                            failures.append(e)

                    if waiter.owner is not None and waiter.owner not in pending:
                        pending.append(waiter.owner)

                if owners is None:
                    _advance(pending, self)
        finally:
            self._draining = False

        return failures


def _advance(owners: list[Owner], deferred: Deferred[Any] | None = None) -> None:
    while owners:
        owners.pop(0).advance(deferred)
