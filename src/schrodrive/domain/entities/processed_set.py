"""Bounded set of already-handled request identifiers."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator


class ProcessedRequestSet:
    """Membership set with FIFO eviction once *capacity* is exceeded.

    Used by the request poller so an approved request is acquired at most
    once while it remains in the window.  Re-adding an id that is already
    present does not refresh its position.
    """

    def __init__(self, capacity: int = 1000) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._order: deque[str] = deque()
        self._members: set[str] = set()

    @property
    def capacity(self) -> int:
        return self._capacity

    def add(self, request_id: str) -> None:
        if request_id in self._members:
            return
        self._order.append(request_id)
        self._members.add(request_id)
        while len(self._order) > self._capacity:
            evicted = self._order.popleft()
            self._members.discard(evicted)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._members

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[str]:
        return iter(self._order)
