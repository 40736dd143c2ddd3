import threading

import pytest

from tyr.pool import Pool, ResettingPool, remove_first, submit


def test_get_from_empty_pool_uses_factory():
    created = []

    def factory():
        obj = object()
        created.append(obj)
        return obj

    pool = Pool(factory)
    item = pool.get()
    assert created == [item]


def test_put_then_get_reuses():
    pool = Pool(list)
    item = pool.get()
    item.append(1)
    pool.put(item)
    assert pool.get() is item


def test_missing_factory():
    with pytest.raises(ValueError, match="missing new function"):
        Pool(None)


def test_resetting_pool_keeps_accepted():
    pool = ResettingPool(list, lambda x: (x.clear(), True)[1])
    item = pool.get()
    item.append(5)
    pool.put(item)
    again = pool.get()
    assert again is item
    assert again == []


def test_resetting_pool_drops_rejected():
    pool = ResettingPool(list, lambda x: False)
    item = pool.get()
    pool.put(item)
    assert pool.get() is not item or False  # a fresh object must be produced
    fresh = pool.get()
    assert fresh == []


def test_resetting_pool_missing_reset():
    with pytest.raises(ValueError, match="missing reset function"):
        ResettingPool(list, None)


def test_remove_first():
    assert remove_first([1, 2, 3, 2], 2) == [1, 3, 2]


def test_remove_first_absent():
    items = ["a", "b"]
    assert remove_first(items, "z") == items


def test_submit_runs_task():
    event = threading.Event()

    def task():
        event.set()
        return "done"

    future = submit(task)
    assert future.result(timeout=5) == "done"
    assert event.is_set()