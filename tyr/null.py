"""A value that may or may not be set, with JSON and bencode decoding."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Generic, Mapping, Optional, Tuple, TypeVar, Union

T = TypeVar("T")


def _bdecode(data: bytes, pos: int) -> Tuple[Any, int]:
    head = data[pos : pos + 1]
    if not head:
        raise ValueError("bencode: unexpected end of data")
    if head == b"i":
        end = data.find(b"e", pos)
        if end < 0:
            raise ValueError("bencode: unterminated integer")
        digits = data[pos + 1 : end]
        if not digits or digits.startswith(b"-0") or (digits.startswith(b"0") and len(digits) > 1):
            raise ValueError(f"bencode: invalid integer {digits!r}")
        try:
            return int(digits), end + 1
        except ValueError:
            raise ValueError(f"bencode: invalid integer {digits!r}") from None
    if head == b"l":
        items = []
        pos += 1
        while data[pos : pos + 1] != b"e":
            item, pos = _bdecode(data, pos)
            items.append(item)
        return items, pos + 1
    if head == b"d":
        result = {}
        pos += 1
        while data[pos : pos + 1] != b"e":
            key, pos = _bdecode(data, pos)
            if not isinstance(key, bytes):
                raise ValueError("bencode: dictionary key must be a string")
            result[key], pos = _bdecode(data, pos)
        return result, pos + 1
    if head.isdigit():
        colon = data.find(b":", pos)
        if colon < 0:
            raise ValueError("bencode: missing string length separator")
        try:
            length = int(data[pos:colon])
        except ValueError:
            raise ValueError("bencode: invalid string length") from None
        start = colon + 1
        end = start + length
        if end > len(data):
            raise ValueError("bencode: string exceeds data")
        return data[start:end], end
    raise ValueError(f"bencode: unexpected byte {head!r} at {pos}")


def _bdecode_raw_dict(data: bytes) -> dict:
    """Decode a bencoded dictionary, keeping each value as its raw bencode bytes."""
    if data[:1] != b"d":
        raise ValueError("bencode: expected a dictionary")
    result = {}
    pos = 1
    while data[pos : pos + 1] != b"e":
        key, pos = _bdecode(data, pos)
        if not isinstance(key, bytes):
            raise ValueError("bencode: dictionary key must be a string")
        start = pos
        _, pos = _bdecode(data, pos)
        result[key] = data[start:pos]
    if pos + 1 != len(data):
        raise ValueError("bencode: trailing data")
    return result


@dataclass(frozen=True)
class Null(Generic[T]):
    """A nullable value; ``set`` tells whether ``value`` carries meaning."""

    value: Optional[T] = None
    set: bool = False

    @classmethod
    def of(cls, value: T) -> "Null[T]":
        return cls(value=value, set=True)

    @classmethod
    def from_optional(cls, value: Optional[T]) -> "Null[T]":
        """Unset for None, set otherwise."""
        if value is None:
            return cls()
        return cls(value=value, set=True)

    def ptr(self) -> Optional[T]:
        """The value when set, else None."""
        return self.value if self.set else None

    def default(self, v: T) -> T:
        """The value when set, else ``v``."""
        return self.value if self.set else v  # type: ignore[return-value]

    def interface(self) -> Any:
        return self.value if self.set else None

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "Null[Any]":
        """Decode JSON; a literal ``null`` gives an unset value."""
        text = data.decode() if isinstance(data, (bytes, bytearray)) else data
        if text.strip() == "null":
            return cls()
        return cls(value=json.loads(text), set=True)

    @classmethod
    def from_bencode(cls, data: bytes, raw: bool = False) -> "Null[Any]":
        """Decode one bencoded value; with ``raw`` the undecoded bytes are kept."""
        data = bytes(data)
        value, end = _bdecode(data, 0)
        if end != len(data):
            raise ValueError("bencode: trailing data")
        return cls(value=data if raw else value, set=True)

    @classmethod
    def from_mapping(cls, mapping: Union[Mapping[Any, Any], bytes], key: Any) -> "Null[Any]":
        """Look up ``key``; absent keys give an unset value.

        ``mapping`` may also be a bencoded dictionary, whose values are then
        kept as raw bencode bytes.
        """
        if isinstance(mapping, (bytes, bytearray, memoryview)):
            mapping = _bdecode_raw_dict(bytes(mapping))
        candidates = [key]
        if isinstance(key, str):
            candidates.append(key.encode())
        for candidate in candidates:
            if candidate in mapping:
                return cls(value=mapping[candidate], set=True)
        return cls()


def nil_uint8(i: int) -> Optional[int]:
    """None for zero, else ``i``."""
    return None if i == 0 else i


def nil_uint16(i: int) -> Optional[int]:
    """None for zero, else ``i``."""
    return None if i == 0 else i


def nil_string(s: str) -> Optional[str]:
    """None for the empty string, else ``s``."""
    return None if s == "" else s