"""A read-only view of a fixed run of bytes."""

from __future__ import annotations

from typing import Protocol, Union

_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


class _Writer(Protocol):
    def write(self, data: bytes) -> object: ...


class ReadOnly:
    """Immutable bytes that can be built from ``str`` or any bytes-like object.

    Instances deliberately compare by identity; use :meth:`equal_bytes` or
    :meth:`equal_string` to compare contents.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Union[str, bytes, bytearray, memoryview]) -> None:
        if isinstance(data, str):
            self._data = data.encode(_ENCODING, _ERRORS)
        else:
            self._data = bytes(data)

    def __len__(self) -> int:
        return len(self._data)

    def __getitem__(self, i: int) -> int:
        return self._data[i]

    def __bytes__(self) -> bytes:
        return self._data

    def __repr__(self) -> str:
        return f"ReadOnly({self._data!r})"

    def copy_into(self, dest: Union[bytearray, memoryview]) -> int:
        """Copy up to ``len(dest)`` bytes into ``dest``; return how many were copied."""
        n = min(len(dest), len(self._data))
        dest[:n] = self._data[:n]
        return n

    def equal_string(self, s: str) -> bool:
        return self._data == s.encode(_ENCODING, _ERRORS)

    def equal_bytes(self, b: Union[bytes, bytearray, memoryview]) -> bool:
        return self._data == bytes(b)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ReadOnly):
            return NotImplemented
        return self._data < other._data

    def write_to(self, w: _Writer) -> int:
        """Write the contents to ``w`` and return the number of bytes written."""
        n = w.write(self._data)
        return len(self._data) if n is None else int(n)

    def string_copy(self) -> str:
        """Return the contents as a new string."""
        return self._data.decode(_ENCODING, _ERRORS)