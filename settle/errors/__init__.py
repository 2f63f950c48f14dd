from __future__ import annotations

from .errors import BatchAggregateFailure, CancelledTask, DoubleSettlement, InvalidStateError, ProducerFailure, SettleError, TimedOut

__all__ = ["BatchAggregateFailure", "CancelledTask", "DoubleSettlement", "InvalidStateError", "ProducerFailure", "SettleError", "TimedOut"]
