from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from settle.cache import MemoCache, fingerprint
from settle.clocks import StepClock
from settle.deferred import Deferred
from settle.errors import ProducerFailure
from settle.events import DoubleSettled
from settle.models.result import Ok

if TYPE_CHECKING:
    from settle.sinks import ListSink


def fetch(user: int, *, full: bool = False) -> Deferred[Any]:
    return Deferred.from_value({"user": user, "full": full})


class Producer:
    def __init__(self, factory: Any = Deferred) -> None:
        self.factory = factory
        self.produced: list[Deferred[Any]] = []

    def __call__(self) -> Deferred[Any]:
        d = self.factory()
        self.produced.append(d)
        return d


def test_producer_called_once_while_in_flight() -> None:
    cache = MemoCache()
    producer = Producer()

    a = cache.get_or_create("X", producer)
    b = cache.get_or_create("X", producer)

    assert a is b
    assert a.pending
    assert len(producer.produced) == 1
    assert cache.producer_calls == 1

    producer.produced[0].resolve(5)
    assert a.value() == 5

    assert cache.get_or_create("X", producer) is a
    assert len(producer.produced) == 1
    assert cache.get("X") is a
    assert len(cache) == 1


def test_distinct_fingerprints() -> None:
    cache = MemoCache()
    producer = Producer()

    assert cache.get_or_create("X", producer) is not cache.get_or_create("Y", producer)
    assert cache.producer_calls == 2
    assert cache.get("Z") is None


def test_reentrant_producer_shares_deferred() -> None:
    cache = MemoCache()
    inner: list[Deferred[Any]] = []

    def producer() -> Deferred[int]:
        inner.append(cache.get_or_create("X", producer))
        return Deferred.from_value(1)

    outer = cache.get_or_create("X", producer)

    assert inner == [outer]
    assert cache.producer_calls == 1
    assert outer.value() == 1


def test_rejected_entry_is_kept() -> None:
    cache = MemoCache()
    producer = Producer()

    a = cache.get_or_create("X", producer)
    producer.produced[0].reject(ValueError("boom"))

    assert a.rejected
    assert cache.get_or_create("X", producer) is a
    assert cache.producer_calls == 1


def test_retry_on_reject() -> None:
    cache = MemoCache(retry_on_reject=True)
    producer = Producer()

    a = cache.get_or_create("X", producer)
    producer.produced[0].reject(ValueError("boom"))

    b = cache.get_or_create("X", producer)
    assert b is not a
    assert b.pending
    assert cache.producer_calls == 2

    producer.produced[1].resolve(1)
    assert cache.get_or_create("X", producer) is b


def test_producer_raises() -> None:
    cache = MemoCache()
    e = ConnectionError("unreachable")

    def producer() -> Deferred[Any]:
        raise e

    d = cache.get_or_create("X", producer)

    with pytest.raises(ProducerFailure) as exc:
        d.value()

    assert exc.value.reason is e
    assert exc.value.__cause__ is e
    assert "X" in cache


def test_producer_returns_non_deferred() -> None:
    cache = MemoCache()

    with pytest.raises(TypeError):
        cache.get_or_create("X", lambda: 42)  # type: ignore[arg-type, return-value]

    assert "X" not in cache


def test_invalidate_leaves_waiters_alone() -> None:
    cache = MemoCache()
    producer = Producer()
    seen: list[Any] = []

    a = cache.get_or_create("X", producer)
    a.await_on(seen.append)

    assert cache.invalidate("X")
    assert not cache.invalidate("X")
    assert "X" not in cache

    b = cache.get_or_create("X", producer)
    assert b is not a

    producer.produced[0].resolve(1)
    assert seen == [Ok(1)]
    assert b.pending


def test_clear() -> None:
    cache = MemoCache()
    cache.get_or_create("X", Producer())
    cache.get_or_create("Y", Producer())

    cache.clear()
    assert len(cache) == 0


def test_ttl() -> None:
    clock = StepClock()
    cache = MemoCache(ttl=10, clock=clock)
    producer = Producer(lambda: Deferred.from_value(1))

    a = cache.get_or_create("X", producer)

    clock.step(5)
    assert cache.get_or_create("X", producer) is a

    clock.step(10)
    b = cache.get_or_create("X", producer)
    assert b is not a
    assert cache.producer_calls == 2


def test_ttl_never_expires_pending_entries() -> None:
    clock = StepClock()
    cache = MemoCache(ttl=10, clock=clock)
    producer = Producer()

    a = cache.get_or_create("X", producer)

    clock.step(100)
    assert cache.get_or_create("X", producer) is a


def test_validation() -> None:
    with pytest.raises(TypeError):
        MemoCache(retry_on_reject="yes")  # type: ignore[arg-type]

    with pytest.raises(TypeError):
        MemoCache(ttl="10")  # type: ignore[arg-type]

    with pytest.raises(ValueError):
        MemoCache(ttl=0)


def test_fingerprint() -> None:
    fp = fingerprint(fetch, 1, full=True)

    assert fp == fingerprint(fetch, 1, full=True)
    assert fp.startswith(f"{fetch.__module__}.fetch:")
    assert fp != fingerprint(fetch, 1)
    assert fp != fingerprint(fetch, 2, full=True)
    assert fp != fingerprint(Producer, 1, full=True)


def test_fingerprint_ignores_dict_order() -> None:
    assert fingerprint(fetch, {"a": 1, "b": 2}) == fingerprint(fetch, {"b": 2, "a": 1})


def test_double_settlement_reported_to_cache_sink(sink: ListSink) -> None:
    cache = MemoCache(sink=sink)
    produced = Deferred[int]()

    d = cache.get_or_create("X", lambda: produced)
    d.resolve(2)
    produced.resolve(1)

    assert d.value() == 2
    assert sink.of(DoubleSettled) == [DoubleSettled(d.id, Ok(2), Ok(1))]
