"""Completion events on a virtual timeline.

Completions live on a binary heap ordered by ``(time_ms, sequence)`` so that
events due at the same instant come out in the order they were scheduled.
Cancellation is lazy: a cancelled event stays on the heap and is skipped when
it reaches the top.
"""

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Iterator, Optional


@dataclass(order=True)
class Completion:
    """A request that finishes on a server at ``time_ms``."""

    time_ms: float
    sequence: int
    server_id: int = field(compare=False)
    request_id: int = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        """Mark this completion so the queue skips it. Idempotent."""
        self.cancelled = True


class EventQueue:
    def __init__(self) -> None:
        self._heap: list[Completion] = []
        self._sequence = itertools.count()

    def schedule(self, time_ms: float, server_id: int, request_id: int) -> Completion:
        event = Completion(
            time_ms=time_ms,
            sequence=next(self._sequence),
            server_id=server_id,
            request_id=request_id,
        )
        self.push(event)
        return event

    def push(self, event: Completion) -> None:
        heapq.heappush(self._heap, event)

    def pop(self) -> Completion:
        self._discard_cancelled()
        return heapq.heappop(self._heap)

    def peek(self) -> Optional[Completion]:
        """Earliest live event, or None."""
        self._discard_cancelled()
        return self._heap[0] if self._heap else None

    def has_events(self) -> bool:
        return self.peek() is not None

    def size(self) -> int:
        return sum(1 for event in self._heap if not event.cancelled)

    def pop_due(self, now_ms: float) -> Iterator[Completion]:
        """Yield every live event with ``time_ms <= now_ms``, earliest first."""
        while True:
            event = self.peek()
            if event is None or event.time_ms > now_ms:
                return
            yield heapq.heappop(self._heap)

    def cancel_for_server(self, server_id: int) -> int:
        """Cancel all pending completions for one server. Returns how many."""
        count = 0
        for event in self._heap:
            if event.server_id == server_id and not event.cancelled:
                event.cancel()
                count += 1
        return count

    def clear(self) -> None:
        self._heap.clear()

    def _discard_cancelled(self) -> None:
        while self._heap and self._heap[0].cancelled:
            heapq.heappop(self._heap)


class VirtualClock:
    """Monotonic simulated time in milliseconds."""

    def __init__(self, start_ms: float = 0.0):
        self._now_ms = start_ms

    @property
    def now_ms(self) -> float:
        return self._now_ms

    def advance_to(self, time_ms: float) -> None:
        if time_ms < self._now_ms:
            raise ValueError(
                f"Cannot move clock backwards from {self._now_ms} to {time_ms}"
            )
        self._now_ms = time_ms

    def reset(self) -> None:
        self._now_ms = 0.0
