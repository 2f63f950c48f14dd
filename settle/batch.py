from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Literal

from settle.errors import BatchAggregateFailure, CancelledTask
from settle.models.result import Ko, Ok, Result

if TYPE_CHECKING:
    from collections.abc import Sequence

    from settle.deferred import Deferred
    from settle.models.handle import Handle
    from settle.task import State

type Mode = Literal["all", "race", "settled"]

MODES: tuple[Mode, ...] = ("all", "race", "settled")


class Batch:
    """A group of awaitables aggregated under one mode.

    A batch is a description until a scheduler starts it: members may then be handles,
    deferreds or other batches, and the scheduler attaches the resulting member handles and
    the aggregate deferred. Member settlements are observed as they happen and the aggregate
    is decided once per scheduler tick, lowest member index first.
    """

    def __init__(self, members: Sequence[Any], mode: Mode = "all", *, fail_fast: bool = True, id: str | None = None) -> None:
        if mode not in MODES:
            msg = f"mode must be one of {MODES}, got {mode!r}"
            raise ValueError(msg)

        if not isinstance(fail_fast, bool):
            msg = f"fail_fast must be `bool`, got {type(fail_fast).__name__}"
            raise TypeError(msg)

        if mode == "race" and not members:
            msg = "race requires at least one member"
            raise ValueError(msg)

        self.id = id or f"batch.{uuid.uuid4().hex[:8]}"
        self.mode: Mode = mode
        self.fail_fast = fail_fast
        self.awaitables = list(members)

        self.state: State = "CREATED"
        self.deferred: Deferred[Any] | None = None
        self.members: list[Handle[Any]] = []
        self.outcomes: list[Result[Any] | None] = [None] * len(self.awaitables)
        self.observed: list[int] = []

    def __repr__(self) -> str:
        return f"Batch(id={self.id}, mode={self.mode}, state={self.state}, members={len(self.awaitables)})"

    @property
    def done(self) -> bool:
        return self.deferred is not None and self.deferred.settled

    def start(self, members: list[Handle[Any]], deferred: Deferred[Any]) -> None:
        assert self.state == "CREATED", "Batch must only be started once."
        assert len(members) == len(self.awaitables), "Every awaitable must have a member."
        self.members = members
        self.deferred = deferred
        self.state = "RUNNING"

    def observe(self, index: int, result: Result[Any]) -> bool:
        """Record a member outcome, return True if the batch still cares about it."""
        assert self.outcomes[index] is None, "Member must settle only once."
        self.outcomes[index] = result

        if self.done:
            return False

        self.observed.append(index)
        return True

    def decide(self) -> list[Handle[Any]]:
        """Settle the aggregate if this tick's observations allow it.

        Returns the members that lost a race and should be asked to stop.
        """
        assert self.deferred is not None, "Batch must be started."
        observed, self.observed = sorted(self.observed), []

        if self.done or not (observed or self._complete()):
            return []

        match self.mode:
            case "race":
                winner = observed[0]
                outcome = self.outcomes[winner]
                assert outcome is not None, "Winner outcome must be set."
                self._settle(outcome)
                return [m for i, m in enumerate(self.members) if i != winner]

            case "all":
                failures = [i for i in (observed if self.fail_fast else range(len(self.outcomes))) if isinstance(self.outcomes[i], Ko)]

                if failures and (self.fail_fast or self._complete()):
                    reason = self.outcomes[failures[0]]
                    assert isinstance(reason, Ko), "Failure must be a Ko."
                    states = {m.id: m.state for m in self.members}
                    self._settle(Ko(BatchAggregateFailure(self.id, reason.value, states)))

                elif self._complete():
                    self._settle(Ok([o.value for o in self.outcomes if isinstance(o, Ok)]))

                return []

            case "settled":
                if self._complete():
                    self._settle(Ok(list(self.outcomes)))
                return []

    def cancel(self) -> bool:
        if self.done or self.deferred is None:
            return False

        self._settle(Ko(CancelledTask(self.id)))
        self.state = "CANCELLED"
        return True

    def _complete(self) -> bool:
        return all(o is not None for o in self.outcomes)

    def _settle(self, result: Result[Any]) -> None:
        assert self.deferred is not None, "Batch must be started."
        self.state = "COMPLETED" if isinstance(result, Ok) else "FAILED"
        self.deferred.settle(result)
