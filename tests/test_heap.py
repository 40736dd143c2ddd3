import pytest

from tyr.heap import Heap


def test_heap():
    h = Heap()
    h.push(2)
    h.push(1)
    h.push(3)

    assert len(h) == 3
    assert h.pop() == 1
    assert len(h) == 2
    h.push(1)
    assert h.pop() == 1
    assert h.pop() == 2
    assert h.pop() == 3
    with pytest.raises(IndexError):
        h.pop()


def test_heap_from_list():
    h = Heap.from_list([1, 2, 3])
    h.push(1)

    assert len(h) == 4
    assert h.pop() == 1
    assert len(h) == 3


def test_from_unsorted_list_pops_in_order():
    h = Heap.from_list([5, 3, 9, 1, 7])
    assert [h.pop() for _ in range(5)] == [1, 3, 5, 7, 9]


def test_peek_does_not_remove():
    h = Heap()
    h.push(4)
    h.push(2)
    assert h.peek() == 2
    assert len(h) == 2


def test_peek_empty_raises():
    with pytest.raises(IndexError):
        Heap().peek()