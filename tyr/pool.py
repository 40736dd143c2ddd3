"""Object pools, list helpers and a shared background task executor."""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Generic, List, Sequence, TypeVar

T = TypeVar("T")


class Pool(Generic[T]):
    """A thread-safe free list of reusable objects."""

    def __init__(self, factory: Callable[[], T]) -> None:
        if factory is None:
            raise ValueError("missing new function")
        self._factory = factory
        self._items: List[T] = []
        self._lock = threading.Lock()

    def get(self) -> T:
        """Take a pooled object, or create a new one if the pool is empty."""
        with self._lock:
            if self._items:
                return self._items.pop()
        return self._factory()

    def put(self, item: T) -> None:
        with self._lock:
            self._items.append(item)


class ResettingPool(Pool[T]):
    """A pool that only keeps objects for which ``reset`` returns True."""

    def __init__(self, factory: Callable[[], T], reset: Callable[[T], bool]) -> None:
        super().__init__(factory)
        if reset is None:
            raise ValueError("missing reset function")
        self._reset = reset

    def get(self) -> T:
        return super().get()

    def put(self, item: T) -> None:
        if self._reset(item):
            super().put(item)


def remove_first(items: Sequence[T], item: T) -> List[T]:
    """Return ``items`` without the first element equal to ``item``."""
    result = list(items)
    try:
        result.remove(item)
    except ValueError:
        pass
    return result


_executor = ThreadPoolExecutor(max_workers=20, thread_name_prefix="tyr-task")


def submit(task: Callable[[], Any]) -> "Future[Any]":
    """Run ``task`` on the shared background worker pool."""
    return _executor.submit(task)