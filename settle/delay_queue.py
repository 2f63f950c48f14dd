from __future__ import annotations

import heapq
import itertools


class DelayQ[T]:
    def __init__(self) -> None:
        self._delayed: list[tuple[float, int, T]] = []
        self._seq = itertools.count()

    def __len__(self) -> int:
        return len(self._delayed)

    def add(self, item: T, time: float) -> None:
        # equal deadlines pop in insertion order
        heapq.heappush(self._delayed, (time, next(self._seq), item))

    def get(self, time: float) -> list[T]:
        items: list[T] = []
        while self._delayed and self._delayed[0][0] <= time:
            items.append(heapq.heappop(self._delayed)[-1])
        return items

    def next(self) -> float | None:
        return self._delayed[0][0] if self._delayed else None
