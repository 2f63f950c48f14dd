from __future__ import annotations

import itertools
import logging
import uuid
from collections import deque
from contextlib import contextmanager
from functools import partial
from inspect import isgenerator
from typing import TYPE_CHECKING, Any

from settle import utils
from settle.batch import Batch
from settle.deferred import Deferred
from settle.errors import CancelledTask
from settle.events import CancelRequested
from settle.loggers import ContextLogger
from settle.models.handle import Handle
from settle.models.result import Ko, Ok, Result
from settle.sinks import LoggingSink
from settle.task import AWT, TRM, Task

if TYPE_CHECKING:
    from collections.abc import Generator, Sequence

    from settle.batch import Mode
    from settle.models.sink import DiagnosticSink


class Scheduler:
    """Cooperative single-threaded scheduler.

    Work happens in ticks. A tick drains the ready queue in FIFO order, running every
    resumed task to its next suspension point or to its end, and then lets each batch that
    observed a member settlement during the drain decide its outcome. Decisions may wake
    more tasks, which are drained by the next tick of the same `advance` call.
    """

    def __init__(self, *, id: str | None = None, sink: DiagnosticSink | None = None, log_level: int | str = logging.NOTSET) -> None:
        self.id = id or f"scheduler.{uuid.uuid4().hex[:8]}"
        self.sink = sink or LoggingSink()
        self.log_level = log_level
        self.tick = 0

        # live tasks only, a task is released when it reaches a terminal state
        self.tasks: dict[str, Task] = {}
        self.handles: dict[str, Handle[Any]] = {}

        self.max_len = 100

        self._ready: deque[tuple[Task, Result[Any] | None]] = deque()
        self._dirty: list[Batch] = []
        self._ticking = False
        self._counter = itertools.count(1)
        self._loggers: dict[str, ContextLogger] = {}

    def __repr__(self) -> str:
        return f"Scheduler(id={self.id}, tick={self.tick}, tasks={len(self.tasks)}, ready={len(self._ready)})"

    def next_id(self, prefix: str = "task") -> str:
        return f"{prefix}.{next(self._counter)}"

    def get(self, id: str) -> Handle[Any]:
        return self.handles[id]

    def forget(self, id: str) -> bool:
        """Drop the handle of a settled task or batch, return False while it is pending."""
        if not self.handles[id].done():
            return False

        del self.handles[id]
        return True

    def submit(self, gen: Generator[Any, Any, Any], *, id: str | None = None) -> Handle[Any]:
        if not isgenerator(gen):
            msg = f"gen must be a generator, got {type(gen).__name__}"
            raise TypeError(msg)

        id = id or self.next_id()
        if id in self.handles:
            msg = f"id {id} already in use"
            raise ValueError(msg)

        task = Task(id, gen, Deferred(id, sink=self.sink))
        handle = Handle[Any](task, self.cancel)

        self.tasks[id] = task
        self.handles[id] = handle
        self._loggers[id] = ContextLogger(self.id, id, self.log_level)

        with self._hold():
            self._ready.append((task, None))

        return handle

    def batch(self, members: Sequence[Any] | Batch, mode: Mode = "all", *, fail_fast: bool = True) -> Handle[Any]:
        batch = members if isinstance(members, Batch) else Batch(members, mode, fail_fast=fail_fast)

        with self._hold():
            handle = self._start(batch)

        return handle

    def cancel(self, handle: Handle[Any]) -> bool:
        with self._hold():
            match handle.target:
                case Task() as task:
                    cancelled = self._cancel_task(task)
                case Batch() as batch:
                    cancelled = batch.cancel()
                    if cancelled:
                        for member in batch.members:
                            self._request_cancel(member, batch)

        return cancelled

    def advance(self, deferred: Deferred[Any] | None = None) -> None:
        self._run()

    def _run(self) -> None:
        if self._ticking:
            # the running tick drains whatever was queued
            return

        self._ticking = True
        try:
            while self._ready or self._dirty:
                self.tick += 1

                while self._ready:
                    task, value = self._ready.popleft()
                    self._step(task, value)

                dirty, self._dirty = self._dirty, []
                for batch in dirty:
                    for loser in batch.decide():
                        self._request_cancel(loser, batch)
        finally:
            self._ticking = False

    @contextmanager
    def _hold(self) -> Generator[None]:
        if self._ticking:
            yield
            return

        self._ticking = True
        try:
            yield
        finally:
            self._ticking = False

        self._run()

    def _step(self, task: Task, value: Result[Any] | None) -> None:
        if task.done:
            return

        if task.cancel_requested:
            self._finish_cancel(task)
            return

        logger = self._loggers[task.id]
        if task.state == "CREATED":
            logger.debug("Task %s started", task.id)

        cmd = task.send(value)

        while True:
            match cmd:
                case TRM(id, Ok(v) as result):
                    logger.debug("Task %s completed with %s", id, utils.truncate(repr(v), self.max_len))
                    self._release(task)
                    task.deferred.settle(result)
                    return

                case TRM(id, Ko(e) as result):
                    logger.error("Task %s failed with %s", id, utils.truncate(repr(e), self.max_len))
                    self._release(task)
                    task.deferred.settle(result)
                    return

                case AWT() if task.cancel_requested:
                    self._finish_cancel(task)
                    return

                case AWT(target=Deferred() as deferred):
                    self._suspend(task, deferred)
                    return

                case AWT(target=Handle() as handle):
                    self._suspend(task, handle.deferred)
                    return

                case AWT(target=Batch() as batch):
                    handle = self._start(batch) if batch.state == "CREATED" else Handle[Any](batch, self.cancel)
                    self._suspend(task, handle.deferred)
                    return

                case AWT(target=target):
                    msg = f"task {task.id} yielded `{type(target).__name__}`, expected `Deferred | Handle | Batch`"
                    cmd = task.send(Ko(TypeError(msg)))

    def _suspend(self, task: Task, deferred: Deferred[Any]) -> None:
        waiter = deferred.await_on(partial(self._wake, task), owner=self)
        task.suspend_on(deferred, waiter)

    def _wake(self, task: Task, result: Result[Any]) -> None:
        self._ready.append((task, result))

    def _start(self, batch: Batch) -> Handle[Any]:
        members = [self._member(a, batch) for a in batch.awaitables]
        batch.start(members, Deferred(batch.id, sink=self.sink))

        handle = Handle[Any](batch, self.cancel)
        self.handles[batch.id] = handle

        for i, member in enumerate(members):
            member.deferred.await_on(partial(self._observe, batch, i), owner=self)

        # empty and already settled batches decide in the next tick
        if batch not in self._dirty:
            self._dirty.append(batch)

        return handle

    def _member(self, awaitable: Any, batch: Batch) -> Handle[Any]:
        match awaitable:
            case Handle():
                return awaitable
            case Deferred():
                return self.submit(_await(awaitable), id=self.next_id(f"{batch.id}.await"))
            case Batch(state="CREATED"):
                return self._start(awaitable)
            case Batch():
                return Handle[Any](awaitable, self.cancel)
            case _:
                msg = f"batch member must be `Deferred | Handle | Batch`, got {type(awaitable).__name__}"
                raise TypeError(msg)

    def _observe(self, batch: Batch, index: int, result: Result[Any]) -> None:
        if batch.observe(index, result) and batch not in self._dirty:
            self._dirty.append(batch)

    def _cancel_task(self, task: Task) -> bool:
        if task.done or task.cancel_requested:
            return False

        if task.state == "SUSPENDED" and task.waiter is not None and task.waiter.active:
            self._finish_cancel(task)
        else:
            # running or queued for resumption, stop at the next suspension check
            task.cancel_requested = True

        return True

    def _finish_cancel(self, task: Task) -> None:
        self._loggers[task.id].debug("Task %s cancelled", task.id)
        self._release(task)

        try:
            task.cancel()
        finally:
            # a generator that refuses to close is still cancelled
            task.deferred.settle(Ko(CancelledTask(task.id)))

    def _release(self, task: Task) -> None:
        del self.tasks[task.id]
        del self._loggers[task.id]

    def _request_cancel(self, handle: Handle[Any], batch: Batch) -> None:
        self.sink.emit(CancelRequested(handle.id, self.tick, batch.id, handle.state))
        self.cancel(handle)


def _await[T](deferred: Deferred[T]) -> Generator[Deferred[T], T, T]:
    return (yield deferred)
