"""A binary min-heap ordered by the elements' ``<`` operator."""

from __future__ import annotations

import heapq
from typing import Generic, List, TypeVar

T = TypeVar("T")


class Heap(Generic[T]):
    """Binary min-heap: ``pop`` always returns the smallest element."""

    def __init__(self) -> None:
        self._data: List[T] = []

    @classmethod
    def from_list(cls, data: List[T]) -> "Heap[T]":
        """Build a heap using ``data`` in place as its storage."""
        heapq.heapify(data)
        heap = cls()
        heap._data = data
        return heap

    def push(self, x: T) -> None:
        heapq.heappush(self._data, x)

    def pop(self) -> T:
        """Remove and return the smallest element; IndexError when empty."""
        return heapq.heappop(self._data)

    def peek(self) -> T:
        """Return the smallest element without removing it; IndexError when empty."""
        return self._data[0]

    def __len__(self) -> int:
        return len(self._data)