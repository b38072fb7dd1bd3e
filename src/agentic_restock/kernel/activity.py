"""
Bounded activity buffers

The watcher's operator log and transaction history are read by presentation
layers that may run for days; both evict their oldest entries once full.
"""

import threading
from collections import deque
from collections.abc import Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """
    Fixed-capacity buffer, newest entry first

    Appends are thread-safe; readers always get a snapshot list.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"Capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries: deque[T] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, entry: T) -> None:
        """Add an entry, evicting the oldest one when full"""
        with self._lock:
            self._entries.appendleft(entry)

    def snapshot(self) -> list[T]:
        """Entries newest first"""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[T]:
        return iter(self.snapshot())
