"""Monitoring and limiting the flow rate of a data stream."""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

# Resolution and precision of the internal clock, in nanoseconds.
_CLOCK_RATE = 20_000_000
_NS_PER_SECOND = 1_000_000_000
_MIN_WAIT = 5_000_000

# Largest reported time remaining: 999h59m59s.
_TIME_REM_LIMIT = (999 * 3600 + 59 * 60 + 59) * _NS_PER_SECOND

_UINT32_MAX = 2**32 - 1

# Process start time rounded down to the nearest clock increment.
_CZERO = time.time_ns() // _CLOCK_RATE * _CLOCK_RATE


def _clock() -> int:
    """Low resolution timestamp in nanoseconds, relative to process start."""
    return time.time_ns() // _CLOCK_RATE * _CLOCK_RATE - _CZERO


def _clock_to_time(c: int) -> datetime:
    return datetime.fromtimestamp((_CZERO + c) / _NS_PER_SECOND, tz=timezone.utc)


def _clock_round(d: int) -> int:
    """Round ``d`` nanoseconds to the nearest clock increment."""
    return (d + (_CLOCK_RATE >> 1)) // _CLOCK_RATE * _CLOCK_RATE


def _round(x: float) -> int:
    """Round a non-negative float to the nearest integer, halves upward."""
    frac, _ = math.modf(x)
    if frac >= 0.5:
        return int(math.ceil(x))
    return int(math.floor(x))


_IBYTE_SUFFIXES = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB")


def _ibytes(s: int) -> str:
    if s < 10:
        return f"{s} B"
    e = min(int(math.floor(math.log(s) / math.log(1024))), len(_IBYTE_SUFFIXES) - 1)
    val = math.floor(s / 1024**e * 10 + 0.5) / 10
    if val < 10:
        return f"{val:.1f} {_IBYTE_SUFFIXES[e]}"
    return f"{val:.0f} {_IBYTE_SUFFIXES[e]}"


class LimitError(Exception):
    """A non-blocking write was cut short by the transfer rate limit."""

    def __init__(self, written: int = 0) -> None:
        super().__init__("flowrate: flow rate limit exceeded")
        self.written = written


class Percent(int):
    """A percentage in increments of 1/1000th of a percent."""

    def as_float(self) -> float:
        return int(self) * 1e-3

    def __str__(self) -> str:
        value = int(self)
        return f"{value // 1000}.{value % 1000:03d}%"


def _percent_of(x: float, total: float) -> Percent:
    if x < 0 or total <= 0:
        return Percent(0)
    p = _round(x / total * 1e5)
    return Percent(min(p, _UINT32_MAX))


def _epoch() -> datetime:
    return datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass(frozen=True)
class Status:
    """Snapshot of a monitor. Rates are bytes per second; times are seconds."""

    start: datetime = field(default_factory=_epoch)
    duration: float = 0.0
    idle: float = 0.0
    bytes: int = 0
    samples: int = 0
    inst_rate: int = 0
    cur_rate: int = 0
    avg_rate: int = 0
    peak_rate: int = 0
    bytes_rem: int = 0
    time_rem: float = 0.0
    active: bool = False

    def rate_string(self) -> str:
        return _ibytes(self.cur_rate) + "/s"


class _MonitoredReader:
    def __init__(self, reader: Any, monitor: "Monitor") -> None:
        self._reader = reader
        self._monitor = monitor

    def read(self, size: int = -1) -> bytes:
        data = self._reader.read(size)
        self._monitor.update(len(data))
        return data


class Monitor:
    """Monitors and limits the transfer rate of a data stream.

    The instantaneous rate is sampled every ``sample_rate`` seconds (default
    0.1) and folded into an exponential moving average whose window is
    ``window_size`` seconds (default 1).
    """

    def __init__(self, sample_rate: float = 0.0, window_size: float = 0.0) -> None:
        s_rate = _clock_round(int(sample_rate * _NS_PER_SECOND))
        if s_rate <= 0:
            s_rate = 5 * _CLOCK_RATE
        if window_size <= 0:
            window_size = 1.0
        now = _clock()
        self._lock = threading.Lock()
        self._active = True
        self._start = now
        self._bytes = 0
        self._samples = 0
        self._r_sample = 0.0
        self._r_ema = 0.0
        self._r_peak = 0.0
        self._r_window = float(window_size)
        self._s_bytes = 0
        self._s_last = now
        self._s_rate = s_rate
        self._t_last = now

    def update(self, n: int) -> int:
        """Record the transfer of ``n`` bytes and return ``n``."""
        with self._lock:
            self._update(n)
        return n

    def wrap_reader(self, reader: Any) -> _MonitoredReader:
        """Return a reader whose reads are counted by this monitor."""
        return _MonitoredReader(reader, self)

    def done(self) -> int:
        """Mark the transfer finished and return the total bytes transferred."""
        with self._lock:
            now = self._update(0)
            if self._s_bytes > 0:
                self._reset_sample(now)
            self._active = False
            self._t_last = 0
            return self._bytes

    def status(self) -> Status:
        """Current transfer status; static after :meth:`done`."""
        with self._lock:
            now = self._update(0)
            active = self._active
            duration = self._s_last - self._start
            total = self._bytes
            bytes_rem = 0
            inst_rate = cur_rate = avg_rate = 0
            time_rem = 0
            if duration > 0:
                r_avg = total / (duration / _NS_PER_SECOND)
                avg_rate = _round(r_avg)
                if active:
                    inst_rate = _round(self._r_sample)
                    cur_rate = _round(self._r_ema)
                    if bytes_rem > 0:
                        t_rate = 0.8 * self._r_ema + 0.2 * r_avg
                        if t_rate > 0:
                            ns = min(bytes_rem / t_rate * 1e9, float(_TIME_REM_LIMIT))
                            time_rem = _clock_round(int(ns))
            return Status(
                start=_clock_to_time(self._start),
                duration=duration / _NS_PER_SECOND,
                idle=(now - self._t_last) / _NS_PER_SECOND,
                bytes=total,
                samples=self._samples,
                inst_rate=inst_rate,
                cur_rate=cur_rate,
                avg_rate=avg_rate,
                peak_rate=_round(self._r_peak),
                bytes_rem=bytes_rem,
                time_rem=time_rem / _NS_PER_SECOND,
                active=active,
            )

    def limit(self, want: int, rate: int, block: bool) -> int:
        """How many of ``want`` bytes may be transferred now at ``rate`` bytes/s.

        With ``block`` the call waits until at least one byte is allowed.
        ``want`` is returned unchanged if it or ``rate`` is below 1, or if the
        transfer is no longer active.
        """
        if want < 1 or rate < 1:
            return want
        with self._lock:
            limit = _round(rate * (self._s_rate / _NS_PER_SECOND))
            if limit <= 0:
                limit = 1
            now = self._update(0)
            if block:
                while self._s_bytes >= limit and self._active:
                    now = self._wait_next_sample(now)
            limit -= self._s_bytes
            if limit > want or not self._active:
                limit = want
        return max(limit, 0)

    def reset(self) -> None:
        """Restart the byte and sample counters from now."""
        with self._lock:
            self._start = _clock()
            self._bytes = 0
            self._s_bytes = 0
            self._samples = 0

    def _update(self, n: int) -> int:
        if not self._active:
            return 0
        now = _clock()
        if n > 0:
            self._t_last = now
        self._s_bytes += n
        s_time = now - self._s_last
        if s_time >= self._s_rate:
            t = s_time / _NS_PER_SECOND
            self._r_sample = self._s_bytes / t
            if self._r_sample > self._r_peak:
                self._r_peak = self._r_sample
            if self._samples > 0:
                w = math.exp(-t / self._r_window)
                self._r_ema = self._r_sample + w * (self._r_ema - self._r_sample)
            else:
                self._r_ema = self._r_sample
            self._reset_sample(now)
        return now

    def _reset_sample(self, sample_time: int) -> None:
        self._bytes += self._s_bytes
        self._samples += 1
        self._s_bytes = 0
        self._s_last = sample_time

    def _wait_next_sample(self, now: int) -> int:
        # Called with the lock held; it is released while sleeping.
        current = self._s_last
        while self._s_last == current and self._active:
            d = max(current + self._s_rate - now, _MIN_WAIT)
            self._lock.release()
            try:
                time.sleep(d / _NS_PER_SECOND)
            finally:
                self._lock.acquire()
            now = self._update(0)
        return now


class Reader(Monitor):
    """A reader limited to ``limit`` bytes per second (unlimited when <= 0)."""

    def __init__(self, reader: Any, limit: int) -> None:
        super().__init__(0, 0)
        self._reader = reader
        self._rate_limit = limit
        self._block = True

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes without exceeding the rate limit.

        A non-blocking reader returns ``b""`` when nothing may be read yet.
        """
        n = self.limit(size, self._rate_limit, self._block)
        if n == 0:
            return b""
        data = self._reader.read(n)
        self.update(len(data))
        return data

    def set_limit(self, new: int) -> int:
        old, self._rate_limit = self._rate_limit, new
        return old

    def set_blocking(self, new: bool) -> bool:
        old, self._block = self._block, new
        return old

    def close(self) -> None:
        """Close the underlying reader, if it can be closed, and finish the transfer."""
        try:
            closer = getattr(self._reader, "close", None)
            if closer is not None:
                closer()
        finally:
            self.done()

    def __enter__(self) -> "Reader":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class Writer(Monitor):
    """A writer limited to ``limit`` bytes per second (unlimited when <= 0)."""

    def __init__(self, writer: Any, limit: int) -> None:
        super().__init__(0, 0)
        self._writer = writer
        self._rate_limit = limit
        self._block = True

    def write(self, data: bytes) -> int:
        """Write all of ``data`` without exceeding the rate limit.

        A non-blocking writer raises :class:`LimitError`, carrying the number
        of bytes already written, when the limit stops it.
        """
        view = memoryview(bytes(data))
        written = 0
        while len(view) > 0:
            allowed = self.limit(len(view), self._rate_limit, self._block)
            if allowed <= 0:
                raise LimitError(written)
            chunk = view[:allowed]
            result = self._writer.write(chunk)
            count = len(chunk) if result is None else int(result)
            self.update(count)
            view = view[count:]
            written += count
        return written

    def set_limit(self, new: int) -> int:
        old, self._rate_limit = self._rate_limit, new
        return old

    def set_blocking(self, new: bool) -> bool:
        old, self._block = self._block, new
        return old

    def close(self) -> None:
        """Close the underlying writer, if it can be closed, and finish the transfer."""
        try:
            closer = getattr(self._writer, "close", None)
            if closer is not None:
                closer()
        finally:
            self.done()

    def __enter__(self) -> "Writer":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()