from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from settle.deferred import Deferred
from settle.errors import DoubleSettlement, InvalidStateError, ProducerFailure
from settle.events import DoubleSettled
from settle.models.result import Ko, Ok

if TYPE_CHECKING:
    from settle.models.result import Result
    from settle.sinks import ListSink


class Owner:
    def __init__(self, log: list[str]) -> None:
        self.log = log
        self.advanced: list[Deferred[Any] | None] = []

    def advance(self, deferred: Deferred[Any] | None = None) -> None:
        self.log.append("advance")
        self.advanced.append(deferred)


def test_settle_is_first_wins(sink: ListSink) -> None:
    d = Deferred[int](sink=sink)
    late = ValueError("late")

    assert d.resolve(1)
    assert not d.resolve(2)
    assert not d.reject(late)

    assert d.fulfilled
    assert d.result == Ok(1)
    assert d.value() == 1
    assert sink.events == [
        DoubleSettled(d.id, Ok(1), Ok(2)),
        DoubleSettled(d.id, Ok(1), Ko(late)),
    ]


def test_strict_settle_raises_after_reporting(sink: ListSink) -> None:
    d = Deferred[int](sink=sink)
    d.resolve(1)

    with pytest.raises(DoubleSettlement) as exc:
        d.resolve(2, strict=True)

    assert exc.value.event == DoubleSettled(d.id, Ok(1), Ok(2))
    assert exc.value.code == 200
    assert len(sink.events) == 1
    assert d.value() == 1


def test_settle_requires_a_result() -> None:
    d = Deferred[int]()

    with pytest.raises(TypeError):
        d.settle(1)  # type: ignore[arg-type]

    assert d.pending


def test_value_while_pending() -> None:
    d = Deferred[int]()

    with pytest.raises(InvalidStateError):
        d.value()


def test_reject_wraps_non_exceptions() -> None:
    d = Deferred[int].from_reason("Error fetching data")
    assert d.rejected

    with pytest.raises(ProducerFailure) as exc:
        d.value()

    assert exc.value.reason == "Error fetching data"


def test_reject_keeps_exceptions() -> None:
    e = ValueError("boom")
    d = Deferred[int].from_reason(e)

    with pytest.raises(ValueError) as exc:
        d.value()

    assert exc.value is e


def test_waiters_resume_in_registration_order() -> None:
    d = Deferred[str]()
    seen: list[tuple[int, Result[str]]] = []

    for i in range(3):
        d.await_on(lambda r, i=i: seen.append((i, r)))

    d.resolve("x")

    assert seen == [(0, Ok("x")), (1, Ok("x")), (2, Ok("x"))]
    assert d.waiters == []


def test_waiters_added_during_fan_out_run_last() -> None:
    d = Deferred[int]()
    seen: list[str] = []

    def first(_: Result[int]) -> None:
        seen.append("first")
        d.await_on(lambda _: seen.append("late"))

    d.await_on(first)
    d.await_on(lambda _: seen.append("second"))
    d.resolve(1)

    assert seen == ["first", "second", "late"]


def test_await_on_settled_runs_immediately() -> None:
    d = Deferred.from_value(1)
    seen: list[Result[int]] = []

    d.await_on(seen.append)

    assert seen == [Ok(1)]


def test_detach() -> None:
    d = Deferred[int]()
    seen: list[Result[int]] = []

    w = d.await_on(seen.append)
    assert d.detach(w)
    assert not d.detach(w)
    assert w not in d.waiters

    d.resolve(1)
    assert seen == []


def test_detach_during_fan_out() -> None:
    d = Deferred[int]()
    seen: list[str] = []
    waiters = []

    waiters.append(d.await_on(lambda _: d.detach(waiters[1])))
    waiters.append(d.await_on(lambda _: seen.append("detached")))
    d.resolve(1)

    assert seen == []


def test_owner_advanced_once_after_fan_out() -> None:
    log: list[str] = []
    owner = Owner(log)
    d = Deferred[int]()

    d.await_on(lambda _: log.append("a"), owner=owner)
    d.await_on(lambda _: log.append("b"), owner=owner)
    d.resolve(1)

    assert log == ["a", "b", "advance"]
    assert owner.advanced == [d]


def test_then_chain() -> None:
    d = Deferred[str]()
    chained = d.then(lambda _: "Tech-Code_").then(lambda value: value.upper())
    assert chained.pending

    d.resolve("Data fetched successfully")
    assert chained.value() == "TECH-CODE_"


def test_then_adopts_deferred() -> None:
    d = Deferred[int]()
    inner = Deferred[int]()
    chained = d.then(lambda _: inner)

    d.resolve(1)
    assert chained.pending

    inner.resolve(2)
    assert chained.value() == 2


def test_then_handler_failure_rejects() -> None:
    e = KeyError("missing")

    def handler(_: int) -> int:
        raise e

    chained = Deferred.from_value(1).then(handler)

    with pytest.raises(KeyError) as exc:
        chained.value()

    assert exc.value is e


def test_then_passes_rejection_through() -> None:
    e = ValueError("Error fetching data")
    chained = Deferred[int].from_reason(e).then(lambda v: v + 1)

    assert chained.rejected
    assert chained.result == Ko(e)


def test_catch_recovers() -> None:
    d = Deferred[int]()
    recovered = d.then(lambda v: v + 1).catch(lambda e: f"recovered from {e}")

    d.reject(ValueError("boom"))
    assert recovered.value() == "recovered from boom"


def test_owner_advances_before_later_plain_waiter() -> None:
    log: list[str] = []
    owner = Owner(log)
    d = Deferred[int]()

    d.await_on(lambda _: log.append("a"), owner=owner)
    d.await_on(lambda _: log.append("b"))
    d.await_on(lambda _: log.append("c"), owner=owner)
    d.resolve(1)

    assert log == ["a", "advance", "b", "c", "advance"]


def test_failing_waiter_does_not_drop_the_rest() -> None:
    log: list[str] = []
    owner = Owner(log)
    d = Deferred[int]()
    e = ValueError("boom")

    def boom(_: Result[int]) -> None:
        raise e

    d.await_on(boom)
    d.await_on(lambda _: log.append("plain"))
    d.await_on(lambda _: log.append("owned"), owner=owner)

    with pytest.raises(ValueError) as exc:
        d.resolve(1)

    assert exc.value is e
    assert d.fulfilled
    assert log == ["plain", "owned", "advance"]
    assert d.waiters == []


def test_settle_all_advances_owners_once() -> None:
    log: list[str] = []
    owner = Owner(log)
    d1, d2 = Deferred[int](), Deferred[int]()

    d1.await_on(lambda _: log.append("d1"), owner=owner)
    d2.await_on(lambda _: log.append("d2"), owner=owner)
    Deferred.settle_all([(d1, Ok(1)), (d2, Ko(ValueError("d2")))])

    assert log == ["d1", "d2", "advance"]
    assert owner.advanced == [None]
    assert d1.fulfilled
    assert d2.rejected
