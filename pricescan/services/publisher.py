"""
Single-slot, last-write-wins result surface for the presentation layer.

No history is kept: `current` is whatever the newest accepted tick resolved
to (None = nothing detected). Each publish carries the generation of the tick
that produced it; anything older than the last accepted generation is dropped.
"""
from typing import Callable, List, Optional

from pricescan.orchestrator.contracts import ResolvedResult

Subscriber = Callable[[Optional[ResolvedResult], int], None]


class ResultPublisher:
    def __init__(self, status_store=None):
        self.status = status_store
        self._current: Optional[ResolvedResult] = None
        self._generation = 0
        self._subscribers: List[Subscriber] = []

    @property
    def current(self) -> Optional[ResolvedResult]:
        return self._current

    @property
    def generation(self) -> int:
        return self._generation

    def publish(self, result: Optional[ResolvedResult], generation: Optional[int] = None) -> bool:
        """Replace the current result. Returns False if dropped as stale."""
        if generation is None:
            generation = self._generation + 1
        elif generation <= self._generation:
            if self.status is not None:
                self.status.log(f"publisher: dropped stale gen={generation} (current gen={self._generation})")
            return False

        self._generation = generation
        self._current = result
        for cb in list(self._subscribers):
            try:
                cb(result, generation)
            except Exception as e:
                # a broken subscriber must not take the tick down with it
                if self.status is not None:
                    self.status.log(f"publisher: subscriber error {type(e).__name__}: {e}")
        return True

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register callback for every publish, Empty included. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe
