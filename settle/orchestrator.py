from __future__ import annotations

import copy
import logging
from inspect import isgeneratorfunction
from typing import TYPE_CHECKING, Any, Concatenate, Literal

from settle import utils
from settle.batch import Batch
from settle.cache import MemoCache, fingerprint
from settle.errors import InvalidStateError, TimedOut
from settle.loggers import ContextLogger
from settle.models.sink import DiagnosticSink
from settle.models.timer import Timer
from settle.options import Options
from settle.scheduler import Scheduler
from settle.sinks import LoggingSink
from settle.timers import StepTimer

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

    from settle.deferred import Deferred
    from settle.models.handle import Handle

ALLOWED_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Orchestrator:
    """Entry point for running tasks."""

    def __init__(
        self,
        *,
        cache_ttl: float | None = None,
        fail_fast: bool = True,
        log_level: int | Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = logging.NOTSET,
        retry_on_reject: bool = False,
        sink: DiagnosticSink | None = None,
        timer: Timer | None = None,
    ) -> None:
        """Create an orchestrator.

        Args:
            cache_ttl (float | None): Seconds a settled cache entry stays valid, measured on
                the timer's clock. Defaults to ``None`` (entries never expire).
            fail_fast (bool): Whether ``all`` fails on the first member failure or waits for
                every member. Defaults to ``True``.
            log_level (int | Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]):
                Logging verbosity for task loggers. Defaults to ``logging.NOTSET``.
            retry_on_reject (bool): Whether a rejected cache entry is produced again on the
                next lookup. Defaults to ``False``.
            sink (DiagnosticSink | None): Receives diagnostic events. Defaults to a sink that
                logs them.
            timer (Timer | None): Timer used by ``ctx.sleep`` and ``ctx.timeout``. Defaults to
                a ``StepTimer`` on simulated time that ``run`` drives.

        """
        # log level
        if not isinstance(log_level, (int, str)):
            msg = f"log_level must be an int or a str, got {type(log_level).__name__}"
            raise TypeError(msg)
        if isinstance(log_level, str) and log_level not in ALLOWED_LOG_LEVELS:
            msg = f"string log_level must be one of {ALLOWED_LOG_LEVELS}, got {log_level!r}"
            raise ValueError(msg)

        # sink
        if sink is not None and not isinstance(sink, DiagnosticSink):
            msg = f"sink must be `DiagnosticSink | None`, got {type(sink).__name__}"
            raise TypeError(msg)

        # timer
        if timer is not None and not isinstance(timer, Timer):
            msg = f"timer must be `Timer | None`, got {type(timer).__name__}"
            raise TypeError(msg)

        self._opts = Options(fail_fast=fail_fast, retry_on_reject=retry_on_reject, cache_ttl=cache_ttl)
        self._log_level = log_level
        self._sink = sink or LoggingSink()
        self._timer = timer or StepTimer(sink=self._sink)
        self._scheduler = Scheduler(sink=self._sink, log_level=log_level)
        self._cache = MemoCache(
            retry_on_reject=self._opts.retry_on_reject,
            ttl=self._opts.cache_ttl,
            sink=self._sink,
            clock=self._timer.clock if isinstance(self._timer, StepTimer) else None,
        )

    def __repr__(self) -> str:
        return f"Orchestrator(scheduler={self._scheduler}, cache={self._cache}, timer={self._timer})"

    @property
    def opts(self) -> Options:
        return self._opts

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def cache(self) -> MemoCache:
        return self._cache

    @property
    def timer(self) -> Timer:
        return self._timer

    @property
    def sink(self) -> DiagnosticSink:
        return self._sink

    def options(self, *, fail_fast: bool | None = None) -> Orchestrator:
        """Return a copy with merged options.

        The copy shares the scheduler, cache and timer of the original.
        """
        copied: Orchestrator = copy.copy(self)
        copied._opts = self._opts.merge(fail_fast=fail_fast)
        return copied

    def begin_run[**P, R](
        self,
        func: Callable[Concatenate[Context, P], Generator[Any, Any, R] | R],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> Handle[R]:
        """Submit a function as a task and return its handle.

        Generator functions suspend at every deferred, handle or batch they yield. Plain
        functions complete in their first step.
        """
        if not callable(func):
            msg = f"func must be callable, got {type(func).__name__}"
            raise TypeError(msg)

        id = self._scheduler.next_id(getattr(func, "__name__", "task"))
        ctx = Context(id, self, ContextLogger(self._scheduler.id, id, self._log_level))
        ctx.logger.debug("Submitting %s(%s)", getattr(func, "__name__", func), utils.format_args_and_kwargs(args, kwargs))

        gen = func(ctx, *args, **kwargs) if isgeneratorfunction(func) else _call(func, ctx, *args, **kwargs)
        return self._scheduler.submit(gen, id=id)

    def run[**P, R](
        self,
        func: Callable[Concatenate[Context, P], Generator[Any, Any, R] | R],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> R:
        """Submit a function as a task and drive it to completion.

        Returns the value of the task or raises its failure unmodified.
        """
        return self.wait(self.begin_run(func, *args, **kwargs))

    def wait[T](self, handle: Handle[T]) -> T:
        """Advance simulated time until the handle settles."""
        while not handle.done():
            if not (isinstance(self._timer, StepTimer) and self._timer.advance()):
                msg = f"{handle.id} is pending and nothing is left to make progress"
                raise InvalidStateError(msg)

        return handle.result()

    def all(self, *awaitables: Any, fail_fast: bool | None = None) -> Handle[list[Any]]:
        return self._scheduler.batch(awaitables, "all", fail_fast=self._opts.fail_fast if fail_fast is None else fail_fast)

    def race(self, *awaitables: Any) -> Handle[Any]:
        return self._scheduler.batch(awaitables, "race")

    def settled(self, *awaitables: Any) -> Handle[list[Any]]:
        return self._scheduler.batch(awaitables, "settled")

    def with_cache[**P, R](self, func: Callable[P, Any], *, key: Callable[P, str] | None = None) -> Memoized[P, R]:
        """Memoize a producer or a task function.

        Calls with the same fingerprint share one deferred while the cache holds the entry.
        Generator functions receive a ``Context`` as first argument and are submitted as
        tasks; other callables are producers and must return a ``Deferred``.
        """
        if not callable(func):
            msg = f"func must be callable, got {type(func).__name__}"
            raise TypeError(msg)

        return Memoized(self, func, key)

    def cancel(self, handle: Handle[Any]) -> bool:
        return self._scheduler.cancel(handle)

    def get(self, id: str) -> Handle[Any]:
        if not isinstance(id, str):
            msg = f"id must be `str`, got {type(id).__name__}"
            raise TypeError(msg)

        return self._scheduler.get(id)

    def forget(self, id: str) -> bool:
        """Release the handle of a settled task, later `get` calls raise `KeyError`."""
        return self._scheduler.forget(id)


class Memoized[**P, R]:
    def __init__(self, orchestrator: Orchestrator, func: Callable[P, Any], key: Callable[P, str] | None) -> None:
        self._orchestrator = orchestrator
        self._func = func
        self._key = key

    def __repr__(self) -> str:
        return f"Memoized(func={getattr(self._func, '__name__', self._func)})"

    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> Deferred[R]:
        return self._orchestrator.cache.get_or_create(self.fingerprint(*args, **kwargs), lambda: self._produce(*args, **kwargs))

    def fingerprint(self, *args: P.args, **kwargs: P.kwargs) -> str:
        return self._key(*args, **kwargs) if self._key else fingerprint(self._func, *args, **kwargs)

    def invalidate(self, *args: P.args, **kwargs: P.kwargs) -> bool:
        return self._orchestrator.cache.invalidate(self.fingerprint(*args, **kwargs))

    def _produce(self, *args: Any, **kwargs: Any) -> Deferred[R]:
        if isgeneratorfunction(self._func):
            return self._orchestrator.begin_run(self._func, *args, **kwargs).deferred
        return self._func(*args, **kwargs)


class Context:
    def __init__(self, id: str, orchestrator: Orchestrator, logger: ContextLogger) -> None:
        self._id = id
        self._orchestrator = orchestrator
        self._logger = logger

    def __repr__(self) -> str:
        return f"Context(id={self._id})"

    @property
    def id(self) -> str:
        """Id of the current task."""
        return self._id

    @property
    def logger(self) -> ContextLogger:
        return self._logger

    def all(self, *awaitables: Any, fail_fast: bool | None = None) -> Batch:
        """Yield to wait for every awaitable, resumes with their values in order."""
        return Batch(awaitables, "all", fail_fast=self._orchestrator.opts.fail_fast if fail_fast is None else fail_fast)

    def race(self, *awaitables: Any) -> Batch:
        """Yield to wait for the first awaitable to settle, resumes with its outcome."""
        return Batch(awaitables, "race")

    def settled(self, *awaitables: Any) -> Batch:
        """Yield to wait for every awaitable, resumes with their `Ok`/`Ko` outcomes in order."""
        return Batch(awaitables, "settled")

    def spawn[**P, R](
        self,
        func: Callable[Concatenate[Context, P], Generator[Any, Any, R] | R],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> Handle[R]:
        """Start a sibling task, yield the handle to wait for it."""
        return self._orchestrator.begin_run(func, *args, **kwargs)

    def cached(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Deferred[Any]:
        return self._orchestrator.with_cache(func)(*args, **kwargs)

    def sleep(self, secs: float) -> Deferred[None]:
        return self._orchestrator.timer.after(secs)

    def timeout(self, awaitable: Any, secs: float) -> Batch:
        """Race an awaitable against a timer that rejects with `TimedOut`."""
        id = getattr(awaitable, "id", self._id)
        return Batch([awaitable, self._orchestrator.timer.fail_after(secs, TimedOut(id, secs))], "race")


def _call[R](func: Callable[..., R], ctx: Context, *args: Any, **kwargs: Any) -> Generator[Any, Any, R]:
    return func(ctx, *args, **kwargs)
    yield  # makes this a generator, the call runs on the first step
