"""File helpers: cancellable copies, hardlink-or-copy, preallocation and a pool of open files."""

from __future__ import annotations

import errno
import io
import logging
import os
import platform
import stat
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Tuple, Union

from tyr.flowrate import Monitor
from tyr.version import IS_LINUX, IS_MACOS

_log = logging.getLogger(__name__)

MIB = 1024 * 1024

_FILE_RANGE_CHUNK = 64 * MIB
_READ_AT_BUFFER = 4 * MIB
_SMART_COPY_BUFFER = MIB


class _Cancel(Protocol):
    def is_set(self) -> bool: ...


class CancelledError(Exception):
    """The operation was stopped because its cancel event was set."""

    def __init__(self) -> None:
        super().__init__("context canceled")


class CancellableReader:
    """Wraps a reader so every read fails once ``cancel`` is set."""

    def __init__(self, cancel: _Cancel, reader: Any) -> None:
        self._cancel = cancel
        self._reader = reader

    def read(self, size: int = -1) -> bytes:
        if self._cancel.is_set():
            raise CancelledError()
        return self._reader.read(size)


def kernel_version() -> Tuple[int, int]:
    """Return the running kernel's ``(major, minor)`` version, parsed as N.N.N."""
    return _parse_kernel_release(platform.release())


def _parse_kernel_release(release: str) -> Tuple[int, int]:
    values = [0, 0]
    value = 0
    vi = 0
    for c in release:
        if "0" <= c <= "9":
            value = value * 10 + (ord(c) - ord("0"))
        else:
            values[vi] = value
            vi += 1
            if vi >= len(values):
                break
            value = 0
    return values[0], values[1]


def _detect_copy_file_range() -> bool:
    # Only trusted from kernel 5.3 on.
    if not IS_LINUX or not hasattr(os, "copy_file_range"):
        return False
    major, minor = kernel_version()
    return major > 5 or (major == 5 and minor >= 3)


_SUPPORT_COPY_FILE_RANGE = _detect_copy_file_range()


def _regular_fd(obj: Any) -> Optional[int]:
    """The descriptor of ``obj`` if it is an open regular file, else None."""
    if not isinstance(obj, (io.FileIO, io.BufferedReader, io.BufferedWriter, io.BufferedRandom)):
        return None
    try:
        fd = obj.fileno()
        mode = os.fstat(fd).st_mode
    except (OSError, ValueError):
        return None
    return fd if stat.S_ISREG(mode) else None


def _generic_copy(dest: Any, src: Any, buf_size: int, cancel: Optional[_Cancel]) -> None:
    reader = CancellableReader(cancel, src) if cancel is not None else src
    while True:
        chunk = reader.read(buf_size)
        if not chunk:
            break
        view = memoryview(chunk)
        while len(view) > 0:
            n = dest.write(view)
            n = len(view) if n is None else int(n)
            view = view[n:]
    flush = getattr(dest, "flush", None)
    if flush is not None:
        flush()


def _file_copy(
    dest: Any,
    dest_fd: int,
    src_fd: int,
    monitor: Optional[Monitor],
    cancel: Optional[_Cancel],
) -> None:
    dest.flush()
    total = os.fstat(src_fd).st_size
    src_offset = 0
    dest_offset = 0
    while True:
        if cancel is not None and cancel.is_set():
            raise CancelledError()
        n = os.copy_file_range(src_fd, dest_fd, _FILE_RANGE_CHUNK, src_offset, dest_offset)
        if monitor is not None:
            monitor.update(n)
        src_offset += n
        dest_offset += n
        if src_offset >= total or n == 0:
            return


def copy(
    dest: Any,
    src: Any,
    buf_size: int = MIB,
    monitor: Optional[Monitor] = None,
    cancel: Optional[_Cancel] = None,
) -> None:
    """Copy everything from ``src`` into ``dest``, stopping when ``cancel`` is set.

    When both are regular files on a Linux kernel of 5.3 or later, the data is
    copied in the kernel from the start of ``src`` and ``monitor`` counts it;
    otherwise ``src`` is read from its current position ``buf_size`` bytes at a time.
    """
    if buf_size <= 0:
        raise ValueError(f"buffer size must be positive, got {buf_size}")
    if _SUPPORT_COPY_FILE_RANGE:
        src_fd = _regular_fd(src)
        dest_fd = _regular_fd(dest)
        if src_fd is not None and dest_fd is not None:
            _file_copy(dest, dest_fd, src_fd, monitor, cancel)
            return
    _generic_copy(dest, src, buf_size, cancel)


def smart_copy(
    src: Union[str, os.PathLike],
    dest: Union[str, os.PathLike],
    monitor: Optional[Monitor] = None,
    cancel: Optional[_Cancel] = None,
) -> None:
    """Hardlink ``src`` to ``dest``; copy instead when they are on different devices."""
    try:
        os.link(src, dest)
        return
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise

    with open(src, "rb") as src_file, open(dest, "wb") as dest_file:
        copy(dest_file, src_file, _SMART_COPY_BUFFER, monitor, cancel)


def _read_at(src: Any, size: int, offset: int) -> bytes:
    if hasattr(os, "pread"):
        try:
            fd = src.fileno()
        except (AttributeError, OSError, ValueError):
            fd = None
        if fd is not None:
            out = bytearray()
            while len(out) < size:
                chunk = os.pread(fd, size - len(out), offset + len(out))
                if not chunk:
                    break
                out += chunk
            return bytes(out)
    src.seek(offset)
    out = bytearray()
    while len(out) < size:
        chunk = src.read(size - len(out))
        if not chunk:
            break
        out += chunk
    return bytes(out)


def _write_all(dst: Any, data: bytes) -> int:
    n = dst.write(data)
    return len(data) if n is None else int(n)


def copy_reader_at(dst: Any, src: Any, offset: int, size: int) -> int:
    """Copy ``size`` bytes of ``src`` starting at ``offset`` into ``dst``.

    Regions of 4 MiB or more are streamed and may end early at end of file;
    smaller regions are read in one go and raise EOFError if short.
    Returns the number of bytes written.
    """
    if size >= _READ_AT_BUFFER:
        written = 0
        while written < size:
            chunk = _read_at(src, min(_READ_AT_BUFFER, size - written), offset + written)
            if not chunk:
                break
            written += _write_all(dst, chunk)
        return written

    data = _read_at(src, size, offset)
    if len(data) < size:
        raise EOFError(f"unexpected EOF: read {len(data)} of {size} bytes at offset {offset}")
    return _write_all(dst, data)


def _fileno(file: Any) -> int:
    if isinstance(file, int):
        return file
    flush = getattr(file, "flush", None)
    if flush is not None:
        flush()
    return file.fileno()


def fallocate(file: Any, offset: int, length: int) -> None:
    """Reserve ``length`` bytes from ``offset`` in ``file`` (object or descriptor)."""
    fd = _fileno(file)
    if IS_MACOS:
        os.ftruncate(fd, offset + length)
        return
    if length == 0:
        return
    if IS_LINUX and hasattr(os, "posix_fallocate"):
        os.posix_fallocate(fd, offset, length)
        return
    os.ftruncate(fd, offset + length)


_POOL_CAPACITY = 128
_POOL_TTL = 5 * 60.0


@dataclass(frozen=True)
class _PoolKey:
    path: str
    flags: int
    mode: int
    ttl: float


@dataclass(eq=False)
class PooledFile:
    """An open file descriptor that can be handed back to the pool."""

    fd: int
    key: _PoolKey = field(repr=False)

    def release(self) -> None:
        """Return this file to the pool so later opens of the same key reuse it."""
        _pool.add(self.key, self)


class _ExpiringLRU:
    def __init__(self, capacity: int, ttl: float) -> None:
        self._capacity = capacity
        self._ttl = ttl
        self._entries: "OrderedDict[_PoolKey, Tuple[PooledFile, float]]" = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def _evict(key: _PoolKey, item: PooledFile) -> None:
        _log.debug("close file %s", key.path)
        try:
            os.close(item.fd)
        except OSError:
            pass

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (_, expires) in self._entries.items() if expires <= now]
        for k in expired:
            item, _ = self._entries.pop(k)
            self._evict(k, item)

    def get(self, key: _PoolKey) -> Optional[PooledFile]:
        with self._lock:
            self._purge_expired(time.monotonic())
            entry = self._entries.get(key)
            if entry is None:
                return None
            self._entries.move_to_end(key)
            return entry[0]

    def add(self, key: _PoolKey, item: PooledFile) -> None:
        with self._lock:
            now = time.monotonic()
            self._purge_expired(now)
            old = self._entries.get(key)
            if old is not None and old[0] is not item:
                self._evict(key, old[0])
            self._entries[key] = (item, now + self._ttl)
            self._entries.move_to_end(key)
            while len(self._entries) > self._capacity:
                k, (evicted, _) = self._entries.popitem(last=False)
                self._evict(k, evicted)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_pool = _ExpiringLRU(_POOL_CAPACITY, _POOL_TTL)


def open_pooled(
    path: Union[str, os.PathLike],
    flags: int,
    mode: int = 0o644,
    ttl: float = 0.0,
) -> PooledFile:
    """Open ``path`` with ``os.open`` semantics, reusing a released descriptor if pooled."""
    key = _PoolKey(path=os.fspath(path), flags=flags, mode=mode, ttl=ttl)
    item = _pool.get(key)
    if item is not None:
        return item
    fd = os.open(key.path, flags, mode)
    return PooledFile(fd=fd, key=key)