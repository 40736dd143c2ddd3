"""A thread-safe bitmap of piece indexes."""

from __future__ import annotations

import threading
from typing import Iterable, Iterator


def _check_index(i: int) -> int:
    if i < 0:
        raise ValueError(f"bit index must be non-negative, got {i}")
    return i


class Bitmap:
    """A set of non-negative integers with a nominal size, safe across threads."""

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError(f"size must be non-negative, got {size}")
        self._size = size
        self._bits = 0
        self._lock = threading.RLock()

    @property
    def size(self) -> int:
        return self._size

    @classmethod
    def from_bits(cls, bits: Iterable[int], size: int) -> "Bitmap":
        """Build a bitmap from set indexes, dropping those at or beyond ``size``."""
        bitmap = cls(size)
        value = 0
        for i in bits:
            if _check_index(i) < size:
                value |= 1 << i
        bitmap._bits = value
        return bitmap

    def _snapshot(self) -> int:
        with self._lock:
            return self._bits

    def clear(self) -> None:
        with self._lock:
            self._bits = 0

    def fill(self) -> None:
        """Set every index in ``range(size)``."""
        with self._lock:
            self._bits |= (1 << self._size) - 1

    def count(self) -> int:
        with self._lock:
            return self._bits.bit_count()

    def set(self, i: int) -> None:
        with self._lock:
            self._bits |= 1 << _check_index(i)

    def unset(self, i: int) -> None:
        with self._lock:
            self._bits &= ~(1 << _check_index(i))

    def xor(self, other: "Bitmap") -> None:
        bits = other._snapshot()
        with self._lock:
            self._bits ^= bits

    def or_(self, other: "Bitmap") -> None:
        bits = other._snapshot()
        with self._lock:
            self._bits |= bits

    def get(self, i: int) -> bool:
        with self._lock:
            return bool(self._bits >> _check_index(i) & 1)

    def __iter__(self) -> Iterator[int]:
        """Yield set indexes in ascending order, from a snapshot."""
        bits = self._snapshot()
        while bits:
            low = bits & -bits
            yield low.bit_length() - 1
            bits ^= low

    def bitfield(self) -> bytes:
        """Encode as a BitTorrent bitfield: index 0 is the high bit of byte 0."""
        length = (self._size + 7) // 8
        out = bytearray(length)
        for i in self:
            if i >= length * 8:
                break
            out[i >> 3] |= 0x80 >> (i & 7)
        return bytes(out)

    def clone(self) -> "Bitmap":
        return Bitmap.from_bits(self, self._size)

    def with_and(self, other: "Bitmap") -> "Bitmap":
        result = self.clone()
        result._bits &= other._snapshot()
        return result

    def with_and_not(self, other: "Bitmap") -> "Bitmap":
        result = self.clone()
        result._bits &= ~other._snapshot()
        return result

    def with_or(self, other: "Bitmap") -> "Bitmap":
        result = self.clone()
        result._bits |= other._snapshot()
        return result

    def __str__(self) -> str:
        return "{" + ",".join(str(i) for i in self) + "}"