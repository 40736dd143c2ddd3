"""Checked integer conversions and lightweight assertions."""

from __future__ import annotations

import operator
from typing import Any

_UINT8_MAX = 2**8 - 1
_UINT16_MAX = 2**16 - 1
_UINT32_MAX = 2**32 - 1
_UINT64_MAX = 2**64 - 1


def _signed_range(bits: int) -> tuple[int, int]:
    return -(2 ** (bits - 1)), 2 ** (bits - 1) - 1


def _checked(v: Any, low: int, high: int, name: str) -> int:
    value = operator.index(v)
    if not low <= value <= high:
        raise OverflowError(f"{value} overflow {name}")
    return value


def as_uint8(v: Any) -> int:
    """Return ``v`` as an unsigned 8-bit value, raising OverflowError if it does not fit."""
    return _checked(v, 0, _UINT8_MAX, "uint8")


def as_uint16(v: Any) -> int:
    """Return ``v`` as an unsigned 16-bit value, raising OverflowError if it does not fit."""
    return _checked(v, 0, _UINT16_MAX, "uint16")


def as_uint32(v: Any) -> int:
    """Return ``v`` as an unsigned 32-bit value, raising OverflowError if it does not fit."""
    return _checked(v, 0, _UINT32_MAX, "uint32")


def as_uint64(v: Any) -> int:
    """Return ``v`` as an unsigned 64-bit value, raising OverflowError if it does not fit."""
    return _checked(v, 0, _UINT64_MAX, "uint64")


def as_int8(v: Any) -> int:
    """Return ``v`` as a signed 8-bit value, raising OverflowError if it does not fit."""
    return _checked(v, *_signed_range(8), "int8")


def as_int16(v: Any) -> int:
    """Return ``v`` as a signed 16-bit value, raising OverflowError if it does not fit."""
    return _checked(v, *_signed_range(16), "int16")


def as_int32(v: Any) -> int:
    """Return ``v`` as a signed 32-bit value, raising OverflowError if it does not fit."""
    return _checked(v, *_signed_range(32), "int32")


def as_int64(v: Any) -> int:
    """Return ``v`` as a signed 64-bit value, raising OverflowError if it does not fit."""
    return _checked(v, *_signed_range(64), "int64")


def as_int(v: Any) -> int:
    """Return ``v`` as a native (64-bit) signed int, raising OverflowError if it does not fit."""
    return _checked(v, *_signed_range(64), "int")


def assert_equal(v1: Any, v2: Any, msg: str | None = None) -> None:
    """Raise AssertionError unless ``v1 == v2``."""
    if not v1 == v2:
        raise AssertionError(msg or "assert failed")


def assert_not_equal(v1: Any, v2: Any, msg: str | None = None) -> None:
    """Raise AssertionError unless ``v1 != v2``."""
    if not v1 != v2:
        raise AssertionError(msg or "assert failed")