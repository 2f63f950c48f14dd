"""Diagnostic events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, final

if TYPE_CHECKING:
    from settle.models.result import Result


@final
@dataclass(frozen=True)
class DoubleSettled:
    id: str
    settled: Result[Any]
    attempted: Result[Any]


@final
@dataclass(frozen=True)
class CancelRequested:
    task_id: str
    tick: int
    batch_id: str | None = None
    state: str | None = None


type Event = DoubleSettled | CancelRequested
